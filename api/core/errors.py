"""
Error taxonomy shared by every feature package.

`main.py` maps each class to an HTTP status and a `{"error": ...}` body.
"""

from __future__ import annotations

from typing import Any


class MasterDataError(RuntimeError):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(MasterDataError):
    status_code = 400


class NotFoundError(MasterDataError):
    status_code = 404


class ConflictError(MasterDataError):
    status_code = 409


class ConflictAmbiguity(ConflictError):
    """
    More than one stored row matches a natural key after trim/case folding.
    """

    def __init__(self, table: str, key: str, ids: list[Any]) -> None:
        super().__init__(f"Ambiguous {table} key '{key.strip()}' matches rows {ids}.")
        self.table = table
        self.key = key
        self.ids = ids


class PersistenceError(MasterDataError):
    status_code = 500


class LookupFailed(PersistenceError):
    pass


class ImportRowError(MasterDataError):
    status_code = 500

    def __init__(
        self,
        *,
        row: int,
        key: str | None,
        reason: str,
        committed: int = 0,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(f"Row {row} ({key or 'no key'}): {reason}")
        self.row = row
        self.key = key
        self.reason = reason
        self.committed = committed
        self.cause = cause

    def as_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "row": self.row,
            "key": self.key,
            "committed": self.committed,
        }
