"""Custom exception hierarchy for pysecurestorage."""

from __future__ import annotations


class SecureStorageError(Exception):
    """Base exception for all pysecurestorage errors."""


class InspectorConfigError(SecureStorageError):
    """Invalid or missing configuration."""


class SettingsStoreError(SecureStorageError):
    """Inspector preferences could not be persisted."""


class ChannelError(SecureStorageError):
    """Debug channel failure (broker unreachable, publish rejected)."""


class DispatchError(SecureStorageError):
    """A command could not be sent to the producer.

    Dispatch is fire-and-forget: this is raised only when the message was
    never handed to the transport.  It is not retried automatically.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str = "",
        key: str | None = None,
    ) -> None:
        self.operation = operation
        self.key = key
        super().__init__(message)


class EndpointNotFoundError(DispatchError):
    """No connected producer exposes the required service extensions."""


class PartialRenameError(DispatchError):
    """A rename deleted the old key but failed to write the new one.

    The value held by ``old_key`` is no longer in the store; callers are
    expected to surface this to the user rather than hide it.
    """

    def __init__(
        self,
        message: str,
        *,
        old_key: str,
        new_key: str,
        deleted: bool = True,
    ) -> None:
        self.old_key = old_key
        self.new_key = new_key
        self.deleted = deleted
        super().__init__(message, operation="rename", key=new_key)
