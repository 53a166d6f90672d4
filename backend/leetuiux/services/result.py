from __future__ import annotations
from dataclasses import dataclass
from typing import Any


@dataclass
class Result:
    """
    Outcome of a call into the data/auth/storage collaborators.

    `error` carries the collaborator's own error object (or a plain message for
    "not found" cases) unmodified. Callers must check `success` before using `data`.
    """
    success: bool
    data: Any = None
    error: Any = None
    action: str | None = None   # like toggle: "liked" | "unliked"
    message: str | None = None  # success-with-caveat

    @classmethod
    def ok(cls, data: Any = None, **kw) -> "Result":
        return cls(success=True, data=data, **kw)

    @classmethod
    def fail(cls, error: Any) -> "Result":
        return cls(success=False, error=error)

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        if isinstance(self.error, str):
            return self.error
        return str(getattr(self.error, "message", None) or self.error)
