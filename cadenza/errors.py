"""Exception hierarchy shared by the lifecycle controller."""

from __future__ import annotations

from typing import Any, Dict, Optional


class CadenzaError(Exception):
    """Base class for cadenza errors."""

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class InternalError(CadenzaError):
    """Data invariant violation that retrying cannot fix."""


class InvalidDagStateError(InternalError):
    """A step reports a status the runtime DAG does not allow."""


class NotFoundError(CadenzaError):
    """Requested workflow instance or step no longer exists."""


class RetryableError(CadenzaError):
    """Transient condition, the job should be delivered again later."""


__all__ = [
    "CadenzaError",
    "InternalError",
    "InvalidDagStateError",
    "NotFoundError",
    "RetryableError",
]
