"""Services for ipfs_upload."""
from .file_collector import FileCollector, FileEntry
from .ipfs_client import INFURA_API_URL, IpfsHttpClient

__all__ = [
    "FileCollector",
    "FileEntry",
    "INFURA_API_URL",
    "IpfsHttpClient",
]
