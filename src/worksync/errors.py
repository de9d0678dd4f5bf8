# src/worksync/errors.py

"""
Error taxonomy.

Mutations raise before touching state, so any of these reaching a caller means
the in-memory workspace is exactly what it was before the call.
"""

from __future__ import annotations


class WorksyncError(Exception):
    """Base class for all errors raised by worksync."""


class ValidationError(WorksyncError, ValueError):
    """Bad input to a mutation (blank title, missing reschedule fields, ...)."""


class Conflict(WorksyncError):
    """Duplicate account on registration or duplicate member name."""


class NotFound(WorksyncError, LookupError):
    """Unknown task id or member name."""


class StorageUnavailable(WorksyncError):
    """The persistence medium failed (I/O, locked database, ...)."""


class AuthError(WorksyncError):
    """Invalid credentials or an unverified account."""


class SyncError(WorksyncError):
    """
    A gateway call failed.

    transient=True marks failures of the simulated remote link; these succeed on
    a later attempt without any change on our side.
    """

    def __init__(self, message: str, *, transient: bool = False) -> None:
        super().__init__(message)
        self.transient = transient
