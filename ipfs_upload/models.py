"""
Models for ipfs_upload.

Immutable dataclasses; progress events are a small tagged variant so the
orchestrator never has to shape-check a generic payload.
"""
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union


class UploadState(Enum):
    """Lifecycle of a single upload."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (UploadState.SUCCEEDED, UploadState.CANCELLED, UploadState.FAILED)


@dataclass(frozen=True)
class UploadRequest:
    """Immutable description of what to upload."""
    path: Path
    pin: bool = True
    show_progress: bool = True
    include_hidden: bool = False

    def __post_init__(self):
        if not str(self.path):
            raise ValueError("UploadRequest.path must not be empty")
        object.__setattr__(self, "path", Path(self.path))


@dataclass(frozen=True)
class Tick:
    """Intermediate progress: bytes processed so far for ``name``."""
    name: str = ""
    bytes: int = 0


@dataclass(frozen=True)
class NamedCompletion:
    """One sub-item finished on the remote side."""
    name: str
    ref: Optional[str] = None
    size: Optional[str] = None


ProgressEvent = Union[Tick, NamedCompletion]


def is_reportable(event: ProgressEvent) -> bool:
    """Only named items with a resolved reference are surfaced to the user."""
    return isinstance(event, NamedCompletion) and bool(event.name) and event.ref is not None


@dataclass(frozen=True)
class UploadResult:
    """Immutable result of a successful upload."""
    content_id: str
    path: Optional[Path] = None
    elapsed: float = 0.0

    def __str__(self) -> str:
        return self.content_id
