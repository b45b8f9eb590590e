"""Core orchestrator - runs one cancellable, progress-observing upload."""
import asyncio
import logging
import time
from typing import Optional

import httpx

from ..cancellation import CancellationScope
from ..exceptions import CancellationError, ContractViolation, IpfsUploadError, UploadError
from ..models import NamedCompletion, Tick, UploadRequest, UploadResult, UploadState, is_reportable
from ..protocols import IContentClient, IProgressReporter
from ..utils.events import DEFAULT_CAPACITY, EventChannel

log = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Orchestrates a single upload against an injected content client.

    With progress enabled, the upload runs as a background task writing into
    a bounded EventChannel while the caller drains it; the task closes the
    channel on every exit path, and its result is only read once the channel
    is drained. Without progress the call is awaited directly. Either way the
    work runs inside the shared CancellationScope.

    An orchestrator is single-use: IDLE -> RUNNING -> SUCCEEDED/CANCELLED/FAILED.

    Usage:
        scope = CancellationScope()
        async with IpfsHttpClient(url, project_id, secret) as client:
            orchestrator = UploadOrchestrator(client, scope, reporter)
            with scope.bind_signals():
                result = await orchestrator.execute(request)
    """

    def __init__(
        self,
        client: IContentClient,
        scope: Optional[CancellationScope] = None,
        reporter: Optional[IProgressReporter] = None,
        capacity: int = DEFAULT_CAPACITY,
    ):
        self._client = client
        self._scope = scope or CancellationScope()
        self._reporter = reporter
        self._capacity = capacity
        self._state = UploadState.IDLE

    @property
    def state(self) -> UploadState:
        return self._state

    @property
    def scope(self) -> CancellationScope:
        return self._scope

    def _transition(self, state: UploadState) -> None:
        if self._state.terminal:
            raise RuntimeError(f"upload already finished ({self._state.value})")
        log.debug("Upload state %s -> %s", self._state.value, state.value)
        self._state = state

    async def execute(self, request: UploadRequest) -> UploadResult:
        """
        Upload ``request.path`` and return its content identifier.

        Raises:
            UploadError: the upload failed or was cancelled; ``cancelled``
                tells the two apart
            ContractViolation: the client emitted an unexpected event
        """
        if self._state is not UploadState.IDLE:
            raise RuntimeError("UploadOrchestrator.execute may only be called once")
        self._transition(UploadState.RUNNING)
        started = time.monotonic()
        log.info("Uploading %s (pin=%s, progress=%s)", request.path, request.pin, request.show_progress)

        try:
            if request.show_progress:
                content_id = await self._upload_with_progress(request)
            else:
                content_id = await self._scope.run(
                    self._client.add(
                        request.path,
                        pin=request.pin,
                        progress=False,
                        include_hidden=request.include_hidden,
                    )
                )
        except CancellationError as exc:
            self._transition(UploadState.CANCELLED)
            log.warning("Upload of %s cancelled", request.path)
            raise UploadError(f"upload cancelled: {exc}", cause=exc) from exc
        except (IpfsUploadError, httpx.HTTPError, OSError) as exc:
            self._transition(UploadState.FAILED)
            log.error("Upload of %s failed: %s", request.path, exc)
            raise UploadError(str(exc), cause=exc) from exc
        except ContractViolation:
            self._transition(UploadState.FAILED)
            raise

        self._transition(UploadState.SUCCEEDED)
        elapsed = time.monotonic() - started
        log.info("Uploaded %s as %s in %.2fs", request.path, content_id, elapsed)
        return UploadResult(content_id=content_id, path=request.path, elapsed=elapsed)

    async def _produce(self, request: UploadRequest, events: EventChannel) -> str:
        try:
            return await self._scope.run(
                self._client.add(
                    request.path,
                    pin=request.pin,
                    progress=True,
                    events=events,
                    include_hidden=request.include_hidden,
                )
            )
        finally:
            events.close()

    async def _upload_with_progress(self, request: UploadRequest) -> str:
        events = EventChannel(self._capacity)
        producer = asyncio.create_task(self._produce(request, events))
        try:
            async for event in events:
                self._dispatch(event)
        except BaseException:
            if not producer.done():
                producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)
            raise

        if not events.drained:
            raise ContractViolation("event stream ended before the channel was drained")
        # Channel is closed and drained, so the task has finished.
        return await producer

    def _dispatch(self, event) -> None:
        if isinstance(event, NamedCompletion):
            if is_reportable(event) and self._reporter is not None:
                self._reporter.on_added(event.name, event.ref)
        elif isinstance(event, Tick):
            if self._reporter is not None:
                self._reporter.on_tick(event.name, event.bytes)
        else:
            raise ContractViolation(f"unknown event type: {type(event).__name__}")
