"""
Error types for the etcd SDK.

This module defines all exception types raised by the SDK:
- EtcdSdkError: Base exception
- NotFoundError: Key is absent
- AlreadyExistsError: Create found an existing key
- EncodeError: A record could not be serialized
- DecodeError: Stored or patched bytes do not fit the model type
- PatchError: Merge patch document malformed or unmergeable
- StoreError / StoreTimeoutError: Store round trip failed
- ConnectionError: Store connection could not be established

Invariants:
    - All errors inherit from EtcdSdkError
    - The error class identifies the root cause; ``stage`` labels where it failed
    - Re-labelled errors keep the original on ``__cause__``
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Optional


class EtcdSdkError(Exception):
    """Base exception for all etcd SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
        stage: Operation stage label, e.g. "failed to get data"
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        stage: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "ETCD_SDK_ERROR"
        self.details = details or {}
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"{self.stage}: {self.message}"
        return self.message

    def with_stage(self, stage: str) -> EtcdSdkError:
        """Return a copy of this error with ``stage`` prepended.

        Example:
            >>> try:
            ...     ...
            ... except NotFoundError as e:
            ...     raise e.with_stage("failed to get data") from e
        """
        err = copy.copy(self)
        err.stage = f"{stage}: {self.stage}" if self.stage else stage
        err.__cause__ = None
        err.__context__ = None
        err.__traceback__ = None
        return err


class NotFoundError(EtcdSdkError):
    """Key not found.

    Raised when:
    - Get/Delete/Patch target is absent
    - Update target is absent and create_if_not_exist is false
    """

    def __init__(self, key: str, message: str = "not found") -> None:
        super().__init__(message, code="NOT_FOUND", details={"key": key})
        self.key = key


class AlreadyExistsError(EtcdSdkError):
    """Create found a record already stored under the key."""

    def __init__(self, key: str, message: str = "already exists") -> None:
        super().__init__(message, code="ALREADY_EXISTS", details={"key": key})
        self.key = key


class EncodeError(EtcdSdkError):
    """Record could not be serialized to JSON."""

    def __init__(self, message: str, type_name: Optional[str] = None) -> None:
        super().__init__(message, code="ENCODE_ERROR", details={"type_name": type_name})
        self.type_name = type_name


class DecodeError(EtcdSdkError):
    """Stored bytes do not conform to the declared model type.

    Attributes:
        key: Storage key of the offending value (if known)
        type_name: Model type the value was decoded into
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        type_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="DECODE_ERROR",
            details={"key": key, "type_name": type_name},
        )
        self.key = key
        self.type_name = type_name


class PatchError(EtcdSdkError):
    """Merge patch document is malformed or cannot be applied."""

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message, code="PATCH_ERROR", details={"key": key})
        self.key = key


class StoreError(EtcdSdkError):
    """Underlying store failure.

    Raised when:
    - The store is unreachable or returned an error
    - The store connection was already closed
    """

    def __init__(
        self,
        message: str,
        code: str = "STORE_ERROR",
        endpoint: Optional[str] = None,
    ) -> None:
        super().__init__(message, code=code, details={"endpoint": endpoint})
        self.endpoint = endpoint


class StoreTimeoutError(StoreError):
    """Store round trip exceeded the operation deadline."""

    def __init__(self, message: str, endpoint: Optional[str] = None) -> None:
        super().__init__(message, code="STORE_TIMEOUT", endpoint=endpoint)


class ConnectionError(EtcdSdkError):
    """Failed to establish or reuse a store connection.

    Raised when:
    - The configuration is invalid (e.g. no endpoints)
    - The store client could not be constructed
    """

    def __init__(
        self,
        message: str,
        endpoints: Optional[list[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="CONNECTION_ERROR",
            details={"endpoints": endpoints or []},
        )
        self.endpoints = endpoints or []
