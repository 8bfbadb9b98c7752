"""
core/errors.py
──────────────
Error taxonomy for the attraction retrieval engine.

  • InvalidArgument   — malformed coordinates, non-positive radius / limit
  • IndexUnavailable  — the store has no ``2dsphere`` index (handled internally)
  • StoreUnavailable  — any other store / communication failure
"""

from __future__ import annotations

from typing import Optional


class RetrievalError(Exception):
    """Base class for every error raised by the retrieval engine."""


class InvalidArgument(RetrievalError, ValueError):
    """Caller supplied a query the engine refuses to run."""


class IndexUnavailable(RetrievalError):
    """The attraction store cannot serve a proximity query without an index."""


class StoreUnavailable(RetrievalError):
    """The attraction store failed for a reason other than a missing index."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} (path={self.path})" if self.path else base
