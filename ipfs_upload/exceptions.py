"""Exception hierarchy for ipfs_upload."""
from typing import Optional


class IpfsUploadError(Exception):
    """Base class for all ipfs_upload errors."""


class ConfigurationError(IpfsUploadError):
    """Missing credentials, bad arguments or an unreadable config file."""


class FilesystemError(IpfsUploadError):
    """The local path cannot be statted, opened or walked."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


class TransportError(IpfsUploadError):
    """Failure reported by the remote API or the HTTP layer."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CancellationError(IpfsUploadError):
    """The operation was interrupted through its cancellation scope."""


class UploadError(IpfsUploadError):
    """Terminal failure of one upload; wraps the underlying cause."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    @property
    def cancelled(self) -> bool:
        return isinstance(self.cause, CancellationError)


class ContractViolation(RuntimeError):
    """
    The remote client handed over something outside its contract.

    Not an ``IpfsUploadError``: this is a programming error and is never
    turned into an UploadError or caught by the CLI.
    """
