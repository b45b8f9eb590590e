"""File collection for multipart uploads."""
import contextlib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Tuple
from urllib.parse import quote

from ..exceptions import FilesystemError

DIRECTORY_TYPE = "application/x-directory"
SYMLINK_TYPE = "application/symlink"
FILE_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class FileEntry:
    """One node of the tree being uploaded."""
    name: str  # path relative to the root's parent, "/"-separated
    path: Path
    kind: str  # "file", "directory" or "symlink"

    @property
    def content_type(self) -> str:
        if self.kind == "directory":
            return DIRECTORY_TYPE
        if self.kind == "symlink":
            return SYMLINK_TYPE
        return FILE_TYPE


def _kind(path: Path) -> str:
    if path.is_symlink():
        return "symlink"
    if path.is_dir():
        return "directory"
    return "file"


class FileCollector:
    """Collects the entries of a file or directory tree, parents first."""

    @staticmethod
    def collect(root: Path, include_hidden: bool = False) -> List[FileEntry]:
        """
        Collect ``root`` and, for a directory, everything beneath it.

        Entries inside a directory are visited in name order. Hidden entries
        (leading dot) below the root are skipped unless ``include_hidden``.
        Symlinks are recorded, never followed.

        Raises:
            FilesystemError: root or a child cannot be statted or listed
        """
        root = Path(root)
        try:
            os.lstat(root)
        except OSError as exc:
            raise FilesystemError(f"cannot stat {root}: {exc.strerror or exc}", root) from exc

        root_name = root.resolve().name if root.name in ("", ".", "..") else root.name
        entries = [FileEntry(root_name, root, _kind(root))]
        if entries[0].kind == "directory":
            FileCollector._walk(root, root_name, include_hidden, entries)
        return entries

    @staticmethod
    def _walk(folder: Path, prefix: str, include_hidden: bool, entries: List[FileEntry]) -> None:
        try:
            children = sorted(folder.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            raise FilesystemError(f"cannot list {folder}: {exc.strerror or exc}", folder) from exc

        for child in children:
            if not include_hidden and child.name.startswith("."):
                continue
            entry = FileEntry(f"{prefix}/{child.name}", child, _kind(child))
            entries.append(entry)
            if entry.kind == "directory":
                FileCollector._walk(child, entry.name, include_hidden, entries)


def build_multipart(
    entries: List[FileEntry],
    stack: contextlib.ExitStack,
    field: str = "file",
) -> List[Tuple[str, Tuple[str, Any, str]]]:
    """
    Turn collected entries into an httpx ``files=`` list.

    Regular files are opened on ``stack`` and streamed by httpx; the caller
    closes the stack once the request is done.
    """
    parts = []
    for entry in entries:
        filename = quote(entry.name, safe="")
        if entry.kind == "directory":
            content: Any = b""
        elif entry.kind == "symlink":
            try:
                content = os.readlink(entry.path).encode()
            except OSError as exc:
                raise FilesystemError(
                    f"cannot read link {entry.path}: {exc.strerror or exc}", entry.path
                ) from exc
        else:
            try:
                content = stack.enter_context(open(entry.path, "rb"))
            except OSError as exc:
                raise FilesystemError(
                    f"cannot open {entry.path}: {exc.strerror or exc}", entry.path
                ) from exc
        parts.append((field, (filename, content, entry.content_type)))
    return parts
