"""Utilities for ipfs_upload."""
from .events import EventChannel

__all__ = ["EventChannel"]
