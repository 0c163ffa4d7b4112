"""
Retry policy engine.

Wraps one transport attempt in a bounded loop. Attempt n+1 starts only after
attempt n has settled, and every attempt reports exactly one telemetry event.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from crm_common.errors import ApiError
from crm_common.logging import get_logger
from crm_common.retry import RetryPolicy
from ..adapters.clock import Clock, SystemClock, reading
from ..domain.models import RetryContext, TelemetryOutcome
from ..telemetry.emitter import TelemetryEmitter

T = TypeVar("T")


class RetryPolicyEngine:
    """Runs ``execute_once`` until it succeeds or the retry budget is spent."""

    def __init__(self,
                 policy: RetryPolicy,
                 telemetry: TelemetryEmitter,
                 clock: Optional[Clock] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.policy = policy
        self.telemetry = telemetry
        self.clock = clock or SystemClock()
        self._sleep = sleep
        self.logger = get_logger("crm_http.retry")

    def is_retryable(self, exc: Exception) -> bool:
        if isinstance(exc, ApiError) and exc.is_unauthorized:
            return self.policy.retry_unauthorized
        return True

    async def attempt(self,
                      execute_once: Callable[[RetryContext], Awaitable[T]],
                      method: str,
                      endpoint: str,
                      request_body: Any = None) -> T:
        ctx = RetryContext(max_retries=self.policy.max_retries, started_at=self.clock.now())

        while True:
            attempt_started = reading(self.clock)
            try:
                result = await execute_once(ctx)
            except Exception as exc:
                status_code = getattr(exc, "status_code", None)
                message = getattr(exc, "message", None) or str(exc)
                self.telemetry.record_attempt(
                    method, endpoint, attempt_started, TelemetryOutcome.FAILED,
                    http_status=status_code,
                    retry_attempt=ctx.attempt_number,
                    request_body=request_body,
                    response_payload=getattr(exc, "payload", None),
                    message=message,
                )

                if not (ctx.can_retry and self.is_retryable(exc)):
                    if ctx.attempt_number > 0:
                        self.logger.error(
                            "All retry attempts exhausted",
                            attempts=ctx.attempt_number + 1,
                            max_retries=ctx.max_retries,
                            status_code=status_code,
                            error=message
                        )
                    raise

                self.logger.warning(
                    "Attempt failed, retrying",
                    attempt=ctx.attempt_number,
                    max_retries=ctx.max_retries,
                    status_code=status_code,
                    error=message
                )
                self.telemetry.record_attempt(
                    method, endpoint, attempt_started, TelemetryOutcome.RETRY_ATTEMPT,
                    http_status=status_code,
                    retry_attempt=ctx.attempt_number,
                    request_body=request_body,
                    message=message,
                )
                ctx.attempt_number += 1

                delay = self.policy.delay_for(ctx.attempt_number)
                if delay > 0:
                    await self._sleep(delay)
                continue

            self.telemetry.record_attempt(
                method, endpoint, attempt_started, TelemetryOutcome.OK,
                http_status=getattr(result, "status_code", None),
                retry_attempt=ctx.attempt_number,
                request_body=request_body,
                response_payload=getattr(result, "payload", result),
            )
            if ctx.attempt_number > 0:
                self.logger.info("Retry succeeded", attempt=ctx.attempt_number)
            return result
