"""Per-scope circuit breaker that suppresses remote calls after a failure.

A scope is usually a lesson id. After a failure the scope stays open until
its cooldown deadline passes on the injected clock; the first check after
that closes it again. State is in-memory only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from .clock import Clock
from .config import CIRCUIT_COOLDOWN_MS, CIRCUIT_NOT_FOUND_COOLDOWN_MS
from .errors import RemoteStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

LESSON_LIST_SCOPE = "lessons"
SESSION_SCOPE = "sessions"


def access_code_scope(access_code: str) -> str:
    return f"code:{access_code.upper()}"


@dataclass
class CircuitState:
    open: bool = False
    open_until_ms: int = 0
    failures: int = 0


class CircuitBreaker:
    """Open/closed state per scope, driven by an injected millisecond clock."""

    def __init__(
        self,
        clock: Clock,
        *,
        cooldown_ms: int = CIRCUIT_COOLDOWN_MS,
        not_found_cooldown_ms: int = CIRCUIT_NOT_FOUND_COOLDOWN_MS,
    ) -> None:
        self.clock = clock
        self.cooldown_ms = cooldown_ms
        self.not_found_cooldown_ms = not_found_cooldown_ms
        self._states: Dict[str, CircuitState] = {}

    def state(self, scope: str) -> CircuitState:
        return self._states.setdefault(scope, CircuitState())

    def is_open(self, scope: str) -> bool:
        st = self._states.get(scope)
        if st is None or not st.open:
            return False
        if self.clock.now_ms() >= st.open_until_ms:
            st.open = False
            logger.info(f"Circuit for {scope} closed after cooldown")
            return False
        return True

    def allow(self, scope: str) -> bool:
        return not self.is_open(scope)

    def record_failure(self, scope: str, cooldown_ms: Optional[int] = None) -> None:
        st = self.state(scope)
        st.open = True
        st.failures += 1
        st.open_until_ms = self.clock.now_ms() + (self.cooldown_ms if cooldown_ms is None else cooldown_ms)
        logger.warning(f"Circuit for {scope} opened until {st.open_until_ms} (failure #{st.failures})")

    def record_success(self, scope: str) -> None:
        st = self._states.get(scope)
        if st is not None:
            st.open = False
            st.failures = 0

    async def call(
        self,
        scope: str,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        fallback: Any = None,
        not_found_cooldown: bool = False,
    ) -> Any:
        """Run a remote call for *scope*, or return *fallback* if open or failing.

        RemoteStoreError opens the circuit; with ``not_found_cooldown`` a 404
        uses the longer not-found cooldown.
        """
        if self.is_open(scope):
            logger.debug(f"Circuit for {scope} is open, skipping {getattr(func, '__name__', func)}")
            return fallback
        try:
            result = await func(*args)
        except RemoteStoreError as e:
            logger.warning(f"Remote call {getattr(func, '__name__', func)} for {scope} failed: {e}")
            cooldown = self.not_found_cooldown_ms if (not_found_cooldown and e.is_not_found) else None
            self.record_failure(scope, cooldown)
            return fallback
        self.record_success(scope)
        return result
