"""Sequential model fallback.

States: Pending(index) -> Succeeded(model) | Pending(index + 1) | Exhausted(error).
Succeeded and Exhausted are terminal. Candidates are never attempted
concurrently: each attempt may spend API quota, and the cheapest success
wins over the fastest.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from kindred.chat.errors import (
    AllModelsFailedError,
    ConfigurationError,
    FailureReason,
    RemoteRejection,
    TransportError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

AttemptError = TransportError | RemoteRejection


@dataclass(frozen=True)
class Pending:
    index: int


@dataclass(frozen=True)
class Succeeded:
    model: str


@dataclass(frozen=True)
class Exhausted:
    error: AttemptError


FallbackState = Pending | Succeeded | Exhausted


@dataclass
class FallbackPolicy:
    """Walks candidate models in priority order until one is accepted."""

    candidates: Sequence[str]
    stop_on_auth_failure: bool = False
    state: FallbackState = field(default_factory=lambda: Pending(0))
    attempts: list[tuple[str, AttemptError]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.candidates = tuple(self.candidates)
        if not self.candidates:
            raise ConfigurationError("No candidate models configured")

    @property
    def current(self) -> str:
        """Model identifier for the pending attempt."""
        if not isinstance(self.state, Pending):
            raise RuntimeError(f"No pending candidate in state {self.state}")
        return self.candidates[self.state.index]

    @property
    def finished(self) -> bool:
        return not isinstance(self.state, Pending)

    def succeed(self) -> str:
        model = self.current
        self.state = Succeeded(model)
        return model

    def fail(self, error: AttemptError) -> None:
        if not isinstance(self.state, Pending):
            raise RuntimeError(f"Cannot record failure in state {self.state}")
        self.attempts.append((self.current, error))
        next_index = self.state.index + 1

        if self.stop_on_auth_failure and error.reason is FailureReason.AUTHENTICATION:
            logger.warning("Authentication failed on %s, not trying other models", self.current)
            self.state = Exhausted(error)
        elif next_index < len(self.candidates):
            self.state = Pending(next_index)
        else:
            self.state = Exhausted(error)

    async def run(self, attempt: Callable[[str], Awaitable[T]]) -> tuple[str, T]:
        """Call attempt(model) per candidate until one returns.

        attempt signals a failed candidate by raising TransportError or
        RemoteRejection; anything else propagates unchanged. Returns
        (model, result) for the accepted candidate.
        """
        while isinstance(self.state, Pending):
            model = self.current
            try:
                result = await attempt(model)
            except (TransportError, RemoteRejection) as e:
                logger.warning("Model %s failed, trying next...: %s", model, e)
                self.fail(e)
                continue
            self.succeed()
            return model, result

        if isinstance(self.state, Succeeded):
            raise RuntimeError("Fallback policy already succeeded; create a new one per call")
        raise AllModelsFailedError(self.state.error, attempts=list(self.attempts))
