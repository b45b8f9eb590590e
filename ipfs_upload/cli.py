"""Command line interface for ipfs_upload."""
from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import stat
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence

from rich.logging import RichHandler

from . import __version__
from .cancellation import CancellationScope
from .cli_progress import (
    UploadProgressDisplay,
    console,
    render_configuration_summary,
    render_elapsed,
    render_error,
)
from .config import ENV_CONFIG_FILE, Settings, parse_bool, resolve_settings
from .exceptions import ConfigurationError, FilesystemError, UploadError
from .models import UploadRequest
from .orchestrator import UploadOrchestrator
from .services.ipfs_client import INFURA_API_URL, IpfsHttpClient

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug, --log-level or LOG_LEVEL is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    env_level = os.getenv("LOG_LEVEL")
    if not debug and not log_level and not env_level:
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, (log_level or env_level).upper(), logging.INFO)

    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # Keep httpx request lines out unless debugging.
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


BOOL_FLAGS = ("--pin", "--progress")


def _split_bool_flags(parser: argparse.ArgumentParser, argv: Sequence[str]) -> List[str]:
    """
    Rewrite ``--pin=VALUE``/``--progress=VALUE`` into ``--pin``/``--no-pin``.

    A bare ``--pin`` never consumes the next token, so ``--pin ./site``
    still treats ``./site`` as the path.
    """
    result = []
    for token in argv:
        flag, sep, value = token.partition("=")
        if sep and flag in BOOL_FLAGS:
            try:
                enabled = parse_bool(value)
            except ValueError as exc:
                parser.error(f"argument {flag}: {exc}")
            token = flag if enabled else f"--no-{flag[2:]}"
        result.append(token)
    return result


def _check_path(path: Path) -> str:
    """lstat the upload path and describe it; raises FilesystemError."""
    try:
        mode = os.lstat(path).st_mode
    except OSError as exc:
        raise FilesystemError(f"lstat {path}: {exc.strerror or exc}", path) from exc
    if stat.S_ISLNK(mode):
        return "symlink"
    return "directory" if stat.S_ISDIR(mode) else "file"


async def _run_upload(path: Path, settings: Settings, include_hidden: bool) -> int:
    request = UploadRequest(
        path=path,
        pin=settings.pin,
        show_progress=settings.progress,
        include_hidden=include_hidden,
    )
    scope = CancellationScope()
    started = time.monotonic()

    try:
        async with IpfsHttpClient(
            settings.api_url,
            project_id=settings.project_id,
            project_secret=settings.project_secret,
        ) as client:
            display = UploadProgressDisplay(path) if request.show_progress else None
            orchestrator = UploadOrchestrator(client, scope, reporter=display)

            with contextlib.ExitStack() as stack:
                stack.enter_context(scope.bind_signals())
                if display is not None:
                    stack.enter_context(display)
                result = await orchestrator.execute(request)

        print(result.content_id, flush=True)
        return EXIT_OK
    except UploadError as exc:
        if exc.cancelled:
            console.print("Cancelled.", highlight=False)
            return EXIT_CANCELLED
        render_error(str(exc))
        return EXIT_FAILURE
    finally:
        if settings.show_elapsed:
            render_elapsed(time.monotonic() - started)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ipfs-upload",
        description="Upload a file or directory to an IPFS HTTP API (Infura by default) and print its CID.",
    )
    parser.add_argument("paths", nargs="*", type=Path, metavar="PATH", help="File or directory to upload")
    parser.add_argument("--id", dest="project_id", default=None, help="Your Infura project ID")
    parser.add_argument("--secret", dest="project_secret", default=None, help="Your Infura project secret")
    parser.add_argument(
        "--url",
        dest="api_url",
        default=None,
        help=f"The API URL (default from IPFS_API_URL or {INFURA_API_URL})",
    )
    parser.add_argument(
        "--pin",
        action="store_const",
        const=True,
        default=None,
        help="Whether or not to pin the data (default true; also --pin=false)",
    )
    parser.add_argument("--no-pin", dest="pin", action="store_const", const=False, help="Do not pin the data")
    parser.add_argument(
        "--progress",
        action="store_const",
        const=True,
        default=None,
        help="Stream progress events to stderr (default true; also --progress=false)",
    )
    parser.add_argument(
        "--no-progress",
        dest="progress",
        action="store_const",
        const=False,
        help="Upload without progress events",
    )
    parser.add_argument(
        "--hidden",
        action="store_true",
        help="Include hidden files (dot-files) when uploading a directory",
    )
    parser.add_argument(
        "--elapsed",
        dest="show_elapsed",
        action="store_true",
        default=True,
        help="Print elapsed wall-clock time to stderr on exit (default)",
    )
    parser.add_argument(
        "--no-elapsed",
        dest="show_elapsed",
        action="store_false",
        help="Do not print elapsed time",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"YAML config file with id/secret/url/pin/progress (default from {ENV_CONFIG_FILE})",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"ipfs-upload {__version__}",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    if argv is None:
        argv = sys.argv[1:]
    args = parser.parse_args(_split_bool_flags(parser, argv))

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            render_error(str(exc))
            return EXIT_FAILURE

    effective_log_mode = _setup_logging(debug=args.debug, log_level=args.log_level)

    try:
        settings = resolve_settings(
            project_id=args.project_id,
            project_secret=args.project_secret,
            api_url=args.api_url,
            pin=args.pin,
            progress=args.progress,
            show_elapsed=args.show_elapsed,
            config_file=args.config,
        )
    except ConfigurationError as exc:
        render_error(str(exc))
        return EXIT_FAILURE

    paths: List[Path] = args.paths
    if len(paths) != 1:
        render_error("file or directory path required as an argument")
        return EXIT_FAILURE
    path = paths[0].expanduser()

    try:
        kind = _check_path(path)
    except FilesystemError as exc:
        render_error(str(exc))
        return EXIT_FAILURE

    if effective_log_mode != "silent":
        render_configuration_summary(
            {
                "Path": str(path),
                "Path Type": kind,
                "API": settings.api_url,
                "Project": settings.project_id,
                "Pin": "yes" if settings.pin else "no",
                "Progress": "yes" if settings.progress else "no",
                "Hidden Files": "yes" if args.hidden else "no",
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )

    try:
        return asyncio.run(_run_upload(path, settings, include_hidden=args.hidden))
    except KeyboardInterrupt:
        console.print("Cancelled.", highlight=False)
        return EXIT_CANCELLED


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
