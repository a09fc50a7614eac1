"""Command line interface for report_uploader package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .cli_progress import (
    BatchUploadProgressDisplay,
    render_configuration_summary,
    render_file_list,
    render_folder_tree,
)
from . import __version__
from .models import UploadConfig


API_URL_ENV = "REPORTS_API_URL"


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    elif log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        env_level = os.getenv("LOG_LEVEL")
        level = getattr(logging, (env_level or "INFO").upper(), logging.INFO)

    from rich.logging import RichHandler

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
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


def _resolve_folder(session, folder: Optional[str]) -> Optional[str]:
    """Accept a folder id or a slash path; None selects the base root."""
    if not folder:
        return None
    if folder in session.tree:
        return folder
    node = session.tree.find_by_path(folder)
    if node is None:
        raise CLIError(f"unknown folder: {folder}")
    return node.id


def _print_messages(session) -> None:
    messages = session.messages
    for concern in ("schema", "existing", "upload", "delete", "submit"):
        text = getattr(messages, concern)
        if text:
            print(f"WARNING [{concern}]: {text}", file=sys.stderr)


async def _cmd_folders(session, args) -> int:
    await session.load_folder_config()
    base_id = args.base or (session.base_ids[0] if session.base_ids else "root")
    occupancy = None
    if args.base:
        await session.open_base(args.base)
        occupancy = session.occupancy(args.base)
    if not session.tree.has_structure:
        print("No custom folder structure, files go to the base root.")
    render_folder_tree(session.tree, base_id, occupancy)
    _print_messages(session)
    return 0


async def _cmd_files(session, args) -> int:
    await session.load_folder_config()
    await session.open_base(args.base)
    if session.messages.existing:
        raise CLIError(session.messages.existing)
    if args.folder is not None:
        session.select_folder(_resolve_folder(session, args.folder))
        files = session.visible_files()
    else:
        files = list(session.active_state.files)
    render_file_list(files, f"{args.base} ({len(files)} file(s))")
    return 0


async def _cmd_upload(session, args) -> int:
    from .orchestrator.batching import plan_batches
    from .orchestrator.transfer import RunOutcome

    await session.load_folder_config()
    await session.open_base(args.base)
    session.select_folder(_resolve_folder(session, args.folder))
    if not session.can_upload:
        raise CLIError("uploads are only allowed into a folder without subfolders (use --folder)")

    intake = session.add_files(args.files)
    for path, reason in intake.rejected:
        print(f"SKIPPED: {path}: {reason}", file=sys.stderr)
    if not intake.accepted:
        raise CLIError("no acceptable files to upload")

    pending = session.queue.pending_items()
    display = BatchUploadProgressDisplay(pending)
    session.events.on("item_progress", display.on_item_progress)
    session.events.on("item_status", display.on_item_status)
    session.events.on("batch_complete", display.on_batch_complete)
    display.start(len(plan_batches(pending, session.config)))

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, session.cancel_upload)
        installed = True
    except (NotImplementedError, RuntimeError):
        installed = False

    try:
        run = await session.upload()
    finally:
        display.stop()
        if installed:
            loop.remove_signal_handler(signal.SIGINT)

    if run is None:
        _print_messages(session)
        return 1
    display.on_finish(run)
    for url in run.urls:
        print(url)
    if run.success:
        return 0
    _print_messages(session)
    return 130 if run.outcome == RunOutcome.CANCELED else 1


async def _cmd_delete(session, args) -> int:
    await session.open_base(args.base)
    ok = await session.delete_existing(args.url, args.base)
    if not ok:
        raise CLIError(session.messages.delete or "delete failed")
    print(f"Deleted. {session.bases[args.base].file_count} file(s) left in {args.base}.")
    return 0


async def _cmd_submit(session, args) -> int:
    for base_id in session.base_ids:
        await session.load_existing_files(base_id)
    missing = [b for b in session.base_ids if not session.bases[b].uploaded]
    if missing:
        raise CLIError(f"no photos uploaded yet for: {', '.join(missing)}")
    ok = await session.submit()
    if not ok:
        raise CLIError(session.messages.submit or "submit failed")
    print(session.messages.submit_success)
    return 0


COMMANDS = {
    "folders": _cmd_folders,
    "files": _cmd_files,
    "upload": _cmd_upload,
    "delete": _cmd_delete,
    "submit": _cmd_submit,
}


def _command_bases(args) -> List[str]:
    if args.command == "submit":
        return list(args.base)
    return [args.base] if getattr(args, "base", None) else []


async def _run_command(args, api_url: str) -> int:
    from .orchestrator.core import ReportUploadSession

    config = UploadConfig(api_base_path=args.base_path or "")
    async with ReportUploadSession(
        api_url,
        args.task,
        _command_bases(args),
        config=config,
    ) as session:
        return await COMMANDS[args.command](session, args)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="report-up",
        description="Upload photo reports of a task into its base folders.",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help=f"Report API URL (default from {API_URL_ENV})",
    )
    parser.add_argument(
        "--base-path",
        default=None,
        help="Path prefix of the web application (example: /app)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"report-up {__version__}",
    )

    sub = parser.add_subparsers(dest="command")

    folders = sub.add_parser("folders", help="Show the folder structure of a task")
    folders.add_argument("task", help="Task id")
    folders.add_argument("--base", default=None, help="Show file counts for this base")

    files = sub.add_parser("files", help="List stored files of a base")
    files.add_argument("task", help="Task id")
    files.add_argument("base", help="Base id")
    files.add_argument("--folder", default=None, help="Folder id or path (default: all files)")

    upload = sub.add_parser("upload", help="Upload photos into a base folder")
    upload.add_argument("task", help="Task id")
    upload.add_argument("base", help="Base id")
    upload.add_argument("files", nargs="+", type=Path, help="Image files")
    upload.add_argument("-f", "--folder", default=None, help="Target folder id or path")

    delete = sub.add_parser("delete", help="Delete one stored file")
    delete.add_argument("task", help="Task id")
    delete.add_argument("base", help="Base id")
    delete.add_argument("url", help="Stored file URL")

    submit = sub.add_parser("submit", help="Submit the report once every base is uploaded")
    submit.add_argument("task", help="Task id")
    submit.add_argument("--base", action="append", required=True, help="Base id (repeatable)")

    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if args.command is None:
        parser.print_help()
        return 0

    api_url = args.api_url or os.getenv(API_URL_ENV)
    if not api_url:
        print(f"ERROR: {API_URL_ENV} environment variable is not set", file=sys.stderr)
        return 1

    if not args.silent:
        render_configuration_summary(
            {
                "Command": args.command,
                "Task": args.task,
                "Base": ", ".join(_command_bases(args)) or "-",
                "API": api_url,
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )

    try:
        return asyncio.run(_run_command(args, api_url))
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
