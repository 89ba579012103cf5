from fastapi import APIRouter

from lexibatch.api.routes import health, imports, jobs, languages

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
api_router.include_router(imports.router, prefix="/imports", tags=["imports"])
api_router.include_router(languages.router, prefix="/languages", tags=["languages"])
