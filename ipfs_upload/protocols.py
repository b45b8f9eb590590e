"""
Protocols (interfaces) the orchestrator depends on.

Small, focused interfaces so tests can plug in stubs.
"""
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from .utils.events import EventChannel


@runtime_checkable
class IContentClient(Protocol):
    """Interface for a content-addressed storage API."""

    async def add(
        self,
        path: Path,
        *,
        pin: bool = True,
        progress: bool = False,
        events: Optional[EventChannel] = None,
        include_hidden: bool = False,
    ) -> str:
        """Upload a file or directory and return its content identifier."""
        ...


@runtime_checkable
class IProgressReporter(Protocol):
    """Interface for surfacing upload progress."""

    def on_added(self, name: str, ref: str) -> None:
        """A named item finished and resolved to ``ref``."""
        ...

    def on_tick(self, name: str, processed: int) -> None:
        """Intermediate byte count for ``name``."""
        ...
