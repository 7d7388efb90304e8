import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Generic, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class Outcome(Generic[T]):
    """Result of a best-effort upstream call: either a value or the error that replaced it."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    def value_or(self, default: Any) -> Any:
        if self.error is not None or self.value is None:
            return default
        return self.value


async def attempt(awaitable: Awaitable[T], label: str) -> "Outcome[T]":
    """Await a best-effort call and fold any failure into an Outcome."""
    try:
        return Outcome(value=await awaitable)
    except Exception as exc:
        logger.warning("%s failed: %s", label, exc)
        return Outcome(error=exc)
