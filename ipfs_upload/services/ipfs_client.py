"""HTTP adapter for the IPFS ``/api/v0/add`` endpoint."""
from __future__ import annotations

import contextlib
import json
import logging
from pathlib import Path
from typing import Any, Optional

import httpx

from ..exceptions import FilesystemError, TransportError
from ..models import NamedCompletion, ProgressEvent, Tick
from ..utils.events import EventChannel
from .file_collector import FileCollector, build_multipart

log = logging.getLogger(__name__)

INFURA_API_URL = "https://ipfs.infura.io:5001"
ADD_ENDPOINT = "/api/v0/add"


def _bool_param(value: bool) -> str:
    return "true" if value else "false"


def parse_add_line(payload: Any) -> ProgressEvent:
    """
    Map one JSON object of the add response stream to a progress event.

    Raises:
        TransportError: the object is an error report from the server, or
            not a well-formed add response object
    """
    if not isinstance(payload, dict):
        raise TransportError(f"malformed add response: expected an object, got {payload!r:.200}")
    if payload.get("Type") == "error" or ("Message" in payload and "Hash" not in payload):
        raise TransportError(f"IPFS add failed: {payload.get('Message', payload)}")

    name = payload.get("Name") or ""
    if "Hash" in payload:
        return NamedCompletion(name=str(name), ref=payload.get("Hash") or None, size=payload.get("Size"))
    try:
        processed = int(payload.get("Bytes") or 0)
    except (TypeError, ValueError) as exc:
        raise TransportError(f"malformed add response: bad Bytes value {payload.get('Bytes')!r}") from exc
    return Tick(name=str(name), bytes=processed)


class IpfsHttpClient:
    """
    Authenticated client for an IPFS HTTP API (Infura by default).

    Implements IContentClient protocol.

    Usage:
        async with IpfsHttpClient(url, project_id, project_secret) as client:
            cid = await client.add(Path("site/"), pin=True)
    """

    def __init__(
        self,
        api_url: str = INFURA_API_URL,
        project_id: Optional[str] = None,
        project_secret: Optional[str] = None,
        timeout: Optional[httpx.Timeout] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_url = api_url.rstrip("/")
        self._auth = httpx.BasicAuth(project_id, project_secret) if project_id else None
        # Large adds can go quiet for a long time before the server answers.
        self._timeout = timeout or httpx.Timeout(60.0, read=None)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def api_url(self) -> str:
        return self._api_url

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            auth=self._auth,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def add(
        self,
        path: Path,
        *,
        pin: bool = True,
        progress: bool = False,
        events: Optional[EventChannel] = None,
        include_hidden: bool = False,
    ) -> str:
        """
        Upload a file or directory and return the root content identifier.

        Every parsed response line is forwarded to ``events`` when given. The
        channel is not closed here; that is the caller's job.

        Raises:
            FilesystemError: the local tree cannot be read
            TransportError: network failure, HTTP error or error in the stream
        """
        if not self._client:
            raise RuntimeError("IpfsHttpClient not initialized. Use 'async with' context.")

        entries = FileCollector.collect(Path(path), include_hidden=include_hidden)
        params = {
            "pin": _bool_param(pin),
            "progress": _bool_param(progress),
            "stream-channels": "true",
        }
        log.debug("Adding %s (%d entries) to %s", path, len(entries), self._api_url)

        content_id: Optional[str] = None
        with contextlib.ExitStack() as stack:
            files = build_multipart(entries, stack)
            try:
                async with self._client.stream("POST", ADD_ENDPOINT, params=params, files=files) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        raise TransportError(
                            f"API error {response.status_code} on POST {ADD_ENDPOINT}: "
                            f"{self._error_detail(response)}",
                            status_code=response.status_code,
                        )

                    async for line in response.aiter_lines():
                        line = line.strip()
                        if not line:
                            continue
                        try:
                            payload = json.loads(line)
                        except json.JSONDecodeError as exc:
                            raise TransportError(f"malformed add response line: {line[:200]!r}") from exc

                        event = parse_add_line(payload)
                        if isinstance(event, NamedCompletion) and event.ref:
                            content_id = event.ref
                            log.debug("Added %s -> %s", event.name, event.ref)
                        if events is not None:
                            await events.send(event)
            except OSError as exc:
                # httpx reads the opened files lazily while streaming the body
                raise FilesystemError(f"cannot read {path}: {exc}", path) from exc
            except httpx.HTTPError as exc:
                raise TransportError(f"request to {self._api_url} failed: {exc}") from exc

        if not content_id:
            raise TransportError("IPFS add response did not contain a content identifier")
        return content_id

    @staticmethod
    def _error_detail(response: httpx.Response) -> Any:
        try:
            body = response.json()
        except ValueError:
            return response.text.strip()
        if isinstance(body, dict) and "Message" in body:
            return body["Message"]
        return body
