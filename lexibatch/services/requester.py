from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Protocol

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type

from lexibatch.core.config import AppSettings
from lexibatch.integrations.llm import ParsedOutput, RateLimited, build_instructions

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class Engine(Protocol):
    async def translate(
        self,
        system_prompt: str,
        instructions: str,
        input_map: Mapping[str, str],
    ) -> ParsedOutput:
        """Return the parsed engine payload or raise RateLimited / TransientFailure."""


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Per-request retry budget.

    Generic failures share ``max_attempts``; rate-limit waits are tracked separately against
    ``rate_limit_max_retries`` so a throttled request can still succeed.
    """

    max_attempts: int = 5
    base_delay: float = 2.0
    rate_limit_delay: float = 25.0
    rate_limit_max_retries: int = 5

    @classmethod
    def from_settings(cls, settings: AppSettings) -> RetryPolicy:
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.retry_delay_seconds,
            rate_limit_delay=settings.rate_limit_delay_seconds,
            rate_limit_max_retries=settings.rate_limit_max_retries,
        )


@dataclass(slots=True)
class RequestResult:
    output: ParsedOutput
    attempts: int
    rate_limited: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

@dataclass(slots=True)
class _AttemptTally:
    attempts: int = 0
    failures: int = 0
    rate_limited: int = 0


class TranslationRequester:
    """Issue one batch request to the engine under the configured retry policy.

    Exhausting the policy never raises; the result carries an ``error`` the caller turns into a
    unit warning and an empty output.
    """

    def __init__(
        self,
        engine: Engine,
        policy: RetryPolicy | None = None,
        *,
        sleep: Sleeper = asyncio.sleep,
        source_name: str = "English",
    ) -> None:
        self._engine = engine
        self._policy = policy or RetryPolicy()
        self._sleep = sleep
        self._source_name = source_name

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def request(
        self,
        system_prompt: str,
        target_descriptor: str,
        input_map: Mapping[str, str],
        *,
        unit: str = "batch",
    ) -> RequestResult:
        instructions = build_instructions(target_descriptor, source_name=self._source_name)
        policy = self._policy
        tally = _AttemptTally()

        async def attempt() -> ParsedOutput:
            tally.attempts += 1
            return await self._engine.translate(system_prompt, instructions, input_map)

        def record_failure(retry_state: RetryCallState) -> None:
            if isinstance(retry_state.outcome.exception(), RateLimited):
                tally.rate_limited += 1
            else:
                tally.failures += 1

        def exhausted(retry_state: RetryCallState) -> bool:
            return (
                tally.failures >= policy.max_attempts
                or tally.rate_limited > policy.rate_limit_max_retries
            )

        def delay_for(retry_state: RetryCallState) -> float:
            if isinstance(retry_state.outcome.exception(), RateLimited):
                return policy.rate_limit_delay
            return policy.base_delay

        def log_retry(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception()
            if isinstance(exc, RateLimited):
                logger.warning(
                    "Rate limit reached for %s; waiting %.0fs before retry",
                    unit,
                    policy.rate_limit_delay,
                )
            else:
                logger.warning(
                    "Attempt %d/%d for %s failed: %s",
                    tally.failures,
                    policy.max_attempts,
                    unit,
                    exc,
                )

        def give_up(retry_state: RetryCallState) -> RequestResult:
            exc = retry_state.outcome.exception()
            if isinstance(exc, RateLimited):
                logger.error("Rate limit persisted for %s after %d waits", unit, tally.rate_limited - 1)
                error = f"Rate limited {tally.rate_limited} times: {exc}"
            else:
                logger.error(
                    "Giving up on %s after %d failed attempts", unit, tally.failures, exc_info=exc
                )
                error = str(exc) or exc.__class__.__name__
            return RequestResult(ParsedOutput.empty(), tally.attempts, tally.rate_limited, error=error)

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(Exception),
            stop=exhausted,
            wait=delay_for,
            after=record_failure,
            before_sleep=log_retry,
            retry_error_callback=give_up,
            sleep=self._sleep,
        )
        outcome = await retrying(attempt)
        if isinstance(outcome, RequestResult):
            return outcome

        if outcome.malformed:
            logger.warning("Engine output for %s was malformed; no translations recovered", unit)
        return RequestResult(outcome, tally.attempts, tally.rate_limited)
