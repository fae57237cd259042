"""Rate-limited, ledger-recorded wrapper around outbound AI calls."""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

from forgekit.core.logging_config import get_logger
from forgekit.errors import RateLimitExceededError

from .models import RateLimitStatus
from .rate_limiter import RateLimiter

logger = get_logger(__name__)


@dataclass
class MeteredCall:
    """Handle yielded by :meth:`UsageMeter.metered`.

    The caller fills in what the provider reported; the values end up in the
    ledger row written when the block exits.
    """

    rate_limit: RateLimitStatus
    tokens_used: Optional[int] = None
    cost: Optional[int] = None
    response_data: Dict[str, Any] = field(default_factory=dict)
    duration_ms: Optional[int] = None


class UsageMeter:
    def __init__(self, limiter: RateLimiter) -> None:
        self.limiter = limiter

    @asynccontextmanager
    async def metered(
        self,
        user_id: str,
        service: str,
        endpoint: str,
        model: Optional[str] = None,
        request_data: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[MeteredCall]:
        """
        Guard a provider call with a rate-limit check and record its outcome.

        Raises:
            RateLimitExceededError: If a limit is exhausted. Nothing is recorded.

        Example:
            async with meter.metered(user_id, "openai", "/embeddings", model) as call:
                result = await provider.embed(text)
                call.tokens_used = result.tokens
        """
        status = await self.limiter.check(user_id, service)
        if not status.allowed:
            logger.warning(f"Rejected {service}{endpoint} for user {user_id}: {status.reason}")
            raise RateLimitExceededError(service, status)

        call = MeteredCall(rate_limit=status)
        started = time.perf_counter()
        try:
            yield call
        except (asyncio.TimeoutError, TimeoutError) as e:
            call.duration_ms = _elapsed_ms(started)
            await self.limiter.record(
                user_id,
                service,
                endpoint,
                "timeout",
                model=model,
                request_data=request_data,
                duration_ms=call.duration_ms,
                error=str(e) or "Request timed out",
            )
            raise
        except Exception as e:
            call.duration_ms = _elapsed_ms(started)
            await self.limiter.record(
                user_id,
                service,
                endpoint,
                "error",
                model=model,
                request_data=request_data,
                duration_ms=call.duration_ms,
                error=str(e) or e.__class__.__name__,
            )
            raise
        else:
            call.duration_ms = _elapsed_ms(started)
            await self.limiter.record(
                user_id,
                service,
                endpoint,
                "success",
                model=model,
                request_data=request_data,
                response_data=call.response_data,
                tokens_used=call.tokens_used,
                cost=call.cost,
                duration_ms=call.duration_ms,
            )


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
