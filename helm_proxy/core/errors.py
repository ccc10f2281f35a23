"""
Error taxonomy for the proxy.

Every failure that should reach an HTTP caller is raised as a HelmProxyError
subclass. The application-level exception handler in main.py converts them
into the uniform `{code: 1, error: ...}` envelope.
"""
from __future__ import annotations

from enum import Enum
from typing import List, Optional


class ErrorCode(str, Enum):
    DUPLICATE_NAME = "DUPLICATE_NAME"
    MISSING_PASSWORD = "MISSING_PASSWORD"
    UNREACHABLE_REPOSITORY = "UNREACHABLE_REPOSITORY"
    NOT_FOUND = "NOT_FOUND"
    EMPTY_REGISTRY = "EMPTY_REGISTRY"
    LOCK_TIMEOUT = "LOCK_TIMEOUT"
    CORRUPT_INDEX = "CORRUPT_INDEX"
    INVALID_CONSTRAINT = "INVALID_CONSTRAINT"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    UPDATE_FAILED = "UPDATE_FAILED"
    INVALID_INPUT = "INVALID_INPUT"


class HelmProxyError(Exception):
    """
    Base class for all errors surfaced to API callers.
    """

    code: ErrorCode = ErrorCode.INVALID_INPUT

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return self.message


class InvalidInputError(HelmProxyError):
    code = ErrorCode.INVALID_INPUT


class DuplicateNameError(HelmProxyError):
    code = ErrorCode.DUPLICATE_NAME


class MissingPasswordError(HelmProxyError):
    code = ErrorCode.MISSING_PASSWORD


class UnreachableRepositoryError(HelmProxyError):
    code = ErrorCode.UNREACHABLE_REPOSITORY


class RepositoryNotFoundError(HelmProxyError):
    code = ErrorCode.NOT_FOUND


class EmptyRegistryError(HelmProxyError):
    code = ErrorCode.EMPTY_REGISTRY


class LockTimeoutError(HelmProxyError):
    code = ErrorCode.LOCK_TIMEOUT


class CorruptIndexError(HelmProxyError):
    code = ErrorCode.CORRUPT_INDEX


class InvalidConstraintError(HelmProxyError):
    code = ErrorCode.INVALID_CONSTRAINT


class TransportError(HelmProxyError):
    code = ErrorCode.TRANSPORT_ERROR


class SyncFailure:
    """
    One failed repository inside an aggregated update.
    """

    def __init__(self, name: str, error: HelmProxyError):
        self.name = name
        self.error = error

    def to_dict(self) -> dict:
        return {"name": self.name, "code": self.error.code.value, "error": self.error.message}


class UpdateFailedError(HelmProxyError):
    """
    Raised by the update-all operation when at least one repository failed.

    The message lists every failure; `failures` keeps them structured.
    """

    code = ErrorCode.UPDATE_FAILED

    def __init__(self, failures: List[SyncFailure]):
        self.failures = list(failures)
        details = "; ".join(f"{f.name}: {f.error.message}" for f in self.failures)
        super().__init__(f"failed to update {len(self.failures)} repositories: {details}")
