"""Result values for best-effort operations.

Revocation, role assignment and per-request reconciliation must never abort
the caller. They return an :class:`Outcome` instead of raising, and the call
site decides how loudly to report a failure, usually via
:func:`log_and_continue`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger


@dataclass(frozen=True)
class Outcome:
    ok: bool
    error: str | None = None
    exception: BaseException | None = None

    @classmethod
    def success(cls) -> Outcome:
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str, exception: BaseException | None = None) -> Outcome:
        return cls(ok=False, error=error, exception=exception)

    def __bool__(self) -> bool:
        return self.ok


def log_and_continue(outcome: Outcome, action: str, **context: Any) -> Outcome:
    """Log a failed best-effort ``action`` as a warning and hand the outcome back."""
    if not outcome.ok:
        logger.bind(**context).warning(
            "{} failed, continuing: {}", action, outcome.error
        )
    return outcome
