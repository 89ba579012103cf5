from fastapi import APIRouter, Depends, HTTPException, Response, status

from lexibatch.api.deps import get_store
from lexibatch.schemas.languages import LanguageItem, LanguageUpsert
from lexibatch.services.store import TranslationStore

router = APIRouter()


@router.get("", response_model=list[LanguageItem], summary="List configured languages.")
async def list_languages(
    store: TranslationStore = Depends(get_store),
) -> list[LanguageItem]:
    languages = await store.list_languages()
    return [LanguageItem.model_validate(language) for language in languages]


@router.post(
    "",
    response_model=LanguageItem,
    summary="Create or update a language.",
)
async def upsert_language(
    payload: LanguageUpsert,
    store: TranslationStore = Depends(get_store),
) -> LanguageItem:
    await store.upsert_languages([payload.model_dump()])
    language = await store.get_language(payload.code)
    if language is None:
        raise HTTPException(status_code=500, detail="Language upsert did not persist.")
    return LanguageItem.model_validate(language)


@router.delete(
    "/{code}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a language and its translations.",
)
async def delete_language(
    code: str,
    store: TranslationStore = Depends(get_store),
) -> Response:
    deleted = await store.delete_language(code)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Language code '{code}' not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
