"""Outcome of a fetch, as seen by the HTTP boundary."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable


class ResultStatus(str, Enum):
    """What a fetch produced."""
    OK = "ok"
    EMPTY = "empty"
    ERROR = "error"


@dataclass(frozen=True)
class FetchResult:
    """
    Success, empty-with-reason, or error.

    The fetcher never decides how a failure looks to an HTTP client; it hands
    one of these to the boundary layer, which picks the status code and body.
    """

    status: ResultStatus
    data: Any = None
    reason: str | None = None
    error: BaseException | None = None

    @classmethod
    def ok(cls, data: Any) -> "FetchResult":
        return cls(status=ResultStatus.OK, data=data)

    @classmethod
    def empty(cls, reason: str, data: Any = None) -> "FetchResult":
        """Nothing to report; ``data`` is the empty value to serve (e.g. ``[]``)."""
        return cls(status=ResultStatus.EMPTY, data=data, reason=reason)

    @classmethod
    def failure(cls, error: BaseException, reason: str | None = None) -> "FetchResult":
        return cls(status=ResultStatus.ERROR, error=error, reason=reason or str(error))

    @property
    def is_ok(self) -> bool:
        return self.status == ResultStatus.OK

    def map(self, fn: Callable[[Any], Any]) -> "FetchResult":
        """Apply ``fn`` to the payload of a successful result; other results pass through."""
        if not self.is_ok:
            return self
        return FetchResult.ok(fn(self.data))

    def or_empty(self, reason: str) -> "FetchResult":
        """Turn a successful result with a falsy payload into an empty one."""
        if self.is_ok and not self.data:
            return FetchResult.empty(reason, data=self.data)
        return self

    def unwrap_or(self, default: Any) -> Any:
        return self.data if self.is_ok else default


__all__ = ["ResultStatus", "FetchResult"]
