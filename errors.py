from __future__ import annotations


class ValidationError(ValueError):
    """Raised when shift values are rejected before reaching the store.

    ``errors`` maps each offending form field to a message so the UI can
    show them next to the field.
    """

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))


class StoreError(RuntimeError):
    """Persistence failure (connection, query, constraint)."""


class DuplicateRecordError(StoreError):
    """A record for the same account and date already exists."""


class RecordNotFoundError(StoreError):
    """The record does not exist or is not visible to the account."""


class AuthError(RuntimeError):
    """Sign-in / sign-up failure reported by the auth provider."""
