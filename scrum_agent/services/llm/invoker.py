"""
Model invocation wrapper.

Every structured model call in the workflow goes through LLMService so that
the daily budget is checked first, transient failures are retried with
exponential backoff, each attempt is bounded by a timeout and the token cost
lands in the budget ledger before the caller sees the result.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Type, TypeVar

from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from scrum_agent.core.exceptions import BudgetExceeded, ExternalCallFault
from scrum_agent.core.logging import get_logger
from scrum_agent.services.budget.ledger import BudgetLedger
from scrum_agent.services.llm.client import Completion, ModelClient

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)
R = TypeVar("R")


class LLMService:
    """Budget-aware, retrying front door to the model client."""

    def __init__(
        self,
        client: ModelClient,
        ledger: BudgetLedger,
        timeout_seconds: float = 60.0,
        max_retries: int = 2,
        retry_base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.ledger = ledger
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._sleep = sleep

    async def structured_invoke(
        self,
        schema: Type[T],
        system_prompt: str,
        user_input: str,
        run_id: Optional[str] = None,
    ) -> T:
        """Call the model and return its output validated against ``schema``.

        Raises:
            BudgetExceeded: Today's spend is at or above the ceiling; no call is made.
            ExternalCallFault: Every attempt failed.
        """
        await self._check_budget()

        async def attempt() -> tuple[T, Completion]:
            completion = await self.client.complete(schema, system_prompt, user_input)
            parsed = completion.parsed
            if not isinstance(parsed, schema):
                parsed = schema.model_validate(parsed)
            return parsed, completion

        parsed, completion = await self._with_retries(attempt, f"structured:{schema.__name__}")

        if completion.usage is not None:
            await self.ledger.log_usage(
                model=self.client.model_name,
                prompt_tokens=completion.usage.prompt_tokens,
                completion_tokens=completion.usage.completion_tokens,
                run_id=run_id,
            )
        return parsed

    async def embed(self, text: str) -> List[float]:
        """Embed ``text`` with the same retry and timeout policy."""
        return await self._with_retries(lambda: self.client.embed(text), "embed")

    async def _check_budget(self) -> None:
        decision = await self.ledger.check_today()
        if decision.degrade:
            raise BudgetExceeded(decision.reason or "Daily budget exceeded")

    async def _with_retries(self, call: Callable[[], Awaitable[R]], label: str) -> R:
        attempts = self.max_retries + 1

        def log_attempt(retry_state: RetryCallState) -> None:
            logger.warning(
                "LLM call %s failed (attempt %d/%d): %s",
                label,
                retry_state.attempt_number,
                attempts,
                retry_state.outcome.exception() or "unknown error",
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=self.retry_base_delay),
            retry=retry_if_not_exception_type(BudgetExceeded),
            before_sleep=log_attempt,
            sleep=self._sleep,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    async with asyncio.timeout(self.timeout_seconds):
                        return await call()
        except RetryError as e:
            last_error = e.last_attempt.exception()
            logger.error("LLM call %s failed after %d attempts", label, attempts)
            raise ExternalCallFault(
                f"{label} failed after {attempts} attempts: {last_error!r}",
                attempts=e.last_attempt.attempt_number,
            ) from last_error
