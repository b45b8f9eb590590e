"""Shared fixtures for ipfs_upload tests."""
import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pytest

ENV_VARS = (
    "INFURA_PROJECT_ID",
    "INFURA_PROJECT_SECRET",
    "IPFS_API_URL",
    "IPFS_PIN",
    "IPFS_PROGRESS",
    "IPFS_UPLOAD_CONFIG",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's own credentials and log settings out of tests."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    logging.disable(logging.NOTSET)


class StubClient:
    """In-memory content client: emits canned events, then returns or raises."""

    def __init__(
        self,
        events: Sequence = (),
        result: str = "bafy...abc",
        error: Optional[BaseException] = None,
        block: bool = False,
    ):
        self._events = list(events)
        self._result = result
        self._error = error
        self._block = block
        self.calls: List[dict] = []
        self.cancelled = False

    async def add(self, path, *, pin=True, progress=False, events=None, include_hidden=False):
        self.calls.append(
            {"path": Path(path), "pin": pin, "progress": progress, "events": events is not None}
        )
        try:
            if events is not None:
                for event in self._events:
                    await events.send(event)
            if self._block:
                await asyncio.Event().wait()
            if self._error is not None:
                raise self._error
            return self._result
        except asyncio.CancelledError:
            self.cancelled = True
            raise


class RecordingReporter:
    """IProgressReporter that remembers what it was told."""

    def __init__(self):
        self.added: List[Tuple[str, str]] = []
        self.ticks: List[Tuple[str, int]] = []

    def on_added(self, name: str, ref: str) -> None:
        self.added.append((name, ref))

    def on_tick(self, name: str, processed: int) -> None:
        self.ticks.append((name, processed))


@pytest.fixture
def reporter():
    return RecordingReporter()
