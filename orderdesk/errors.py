"""Exceptions raised by the order and table core."""

from __future__ import annotations


class PosError(Exception):
    """Base exception for all orderdesk errors."""


class ValidationError(PosError):
    """Raised when caller input breaks an order rule."""

    def __init__(self, rule: str) -> None:
        self.rule = rule
        super().__init__(rule)


class NotFoundError(PosError):
    """Raised when a product, order or table does not exist."""

    def __init__(self, kind: str, key: object) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class StorageError(PosError):
    """Raised when the persistence layer fails."""

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.cause = cause
        msg = f"Storage failure during {operation}"
        if cause is not None:
            msg = f"{msg}: {cause}"
        super().__init__(msg)
