"""
ipfs_upload - upload a file or directory to an IPFS HTTP API and print its CID.

Usage:
    from ipfs_upload import CancellationScope, IpfsHttpClient, UploadOrchestrator, UploadRequest

    scope = CancellationScope()
    async with IpfsHttpClient(api_url, project_id, project_secret) as client:
        with scope.bind_signals():
            result = await UploadOrchestrator(client, scope).execute(UploadRequest(path))
    print(result.content_id)
"""
__version__ = "0.1.0"

from .cancellation import CancellationScope
from .exceptions import (
    CancellationError,
    ConfigurationError,
    ContractViolation,
    FilesystemError,
    IpfsUploadError,
    TransportError,
    UploadError,
)
from .models import NamedCompletion, Tick, UploadRequest, UploadResult, UploadState
from .orchestrator import UploadOrchestrator
from .services import IpfsHttpClient

__all__ = [
    # Main
    "UploadOrchestrator",
    "CancellationScope",
    "IpfsHttpClient",
    # Models
    "UploadRequest",
    "UploadResult",
    "UploadState",
    "Tick",
    "NamedCompletion",
    # Errors
    "IpfsUploadError",
    "ConfigurationError",
    "FilesystemError",
    "TransportError",
    "CancellationError",
    "UploadError",
    "ContractViolation",
]
