import argparse
import logging
import os
import sys
from typing import Optional, TextIO

from backup.api import BackupService, RunOutcome, build_config, retention_policy
from backup.errors import ConfigurationError, FatalBackupError
from backup.prompt import interactive_resolver
from backup.types import BackupResult, LogAction
from core.logging_utils import configure_json_logging
from core.paths import expand_path, resolve_working_dir
from core.settings import load_settings, update_settings

LOGGER = logging.getLogger("folderbackup.cli")

EXIT_OK = 0
EXIT_TASK_FAILED = 1
EXIT_FATAL = 2

_GREEN = "\033[32m"
_RED = "\033[31m"
_YELLOW = "\033[33m"
_RESET = "\033[0m"


def _paint(text: str, color: str, stream: TextIO) -> str:
    if os.environ.get("NO_COLOR") or not getattr(stream, "isatty", lambda: False)():
        return text
    return f"{color}{text}{_RESET}"


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Back up the folders listed in a manifest into per-folder zip archives."
    )
    parser.add_argument("--manifest", help="CSV manifest with name, app and optional LogAction columns.")
    parser.add_argument("--destination", help="Root directory receiving timestamped run folders.")
    parser.add_argument(
        "--log-extensions",
        help="Comma separated globs classifying log files (default from settings, e.g. *.log,*.txt).",
    )
    parser.add_argument(
        "--default-action",
        choices=[action.value for action in LogAction],
        help="Log action for rows without one.",
    )
    parser.add_argument("--scratch", help="Directory for temporary staging copies.")
    prompt = parser.add_mutually_exclusive_group()
    prompt.add_argument(
        "--prompt",
        dest="prompt",
        action="store_true",
        default=None,
        help="Ask for a log action when the manifest has none and logs are present.",
    )
    prompt.add_argument("--no-prompt", dest="prompt", action="store_false", help="Never ask; use the default.")
    parser.add_argument("--save", action="store_true", help="Remember the given options in settings.json.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose console logging.")
    return parser.parse_args(argv)


def _print_result(index: int, total: int, result: BackupResult, stream: Optional[TextIO] = None) -> None:
    stream = stream or sys.stdout
    label = result.task.folder_label
    if result.ok:
        status = _paint("OK", _GREEN, stream)
        detail = str(result.archive_path)
    else:
        status = _paint("FAILED", _RED, stream)
        detail = result.error_detail or ""
    print(f"[{index}/{total}] {label} ({result.source_size_label}): {status} {detail}", file=stream)
    if result.log_inventory.count:
        action = result.task.log_action.value if result.task.log_action else "-"
        print(f"    logs: {result.log_inventory.count} file(s), action={action}", file=stream)
    if result.locked_files:
        note = _paint(f"    skipped {len(result.locked_files)} locked file(s)", _YELLOW, stream)
        print(note, file=stream)
    if result.logs_deleted is False:
        print(_paint("    some log files could not be deleted", _YELLOW, stream), file=stream)


def _print_summary(outcome: RunOutcome, stream: Optional[TextIO] = None) -> None:
    stream = stream or sys.stdout
    report = outcome.report
    failed = _paint(str(report.failed), _RED if report.failed else _GREEN, stream)
    print("", file=stream)
    print(f"Total: {report.total}  Succeeded: {report.succeeded}  Failed: {failed}", file=stream)
    print(f"Archives: {outcome.run_dir}", file=stream)
    print(f"Report:   {outcome.report_path}", file=stream)
    print(f"Run log:  {outcome.log_path}", file=stream)
    if outcome.warnings:
        print(_paint(f"Warnings: {outcome.warnings} (see run log)", _YELLOW, stream), file=stream)
    if outcome.retention and outcome.retention.removed:
        print(f"Removed old runs: {', '.join(outcome.retention.removed)}", file=stream)


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    working_dir = resolve_working_dir()
    configure_json_logging("folderbackup", working_dir)
    settings = load_settings(working_dir)

    manifest = args.manifest or settings.get("manifest_path")
    if not manifest:
        print("error: no manifest given (use --manifest or set manifest_path)", file=sys.stderr)
        return EXIT_FATAL
    try:
        config = build_config(
            settings,
            destination_root=args.destination,
            log_extensions=args.log_extensions,
            default_log_action=args.default_action,
            scratch_root=args.scratch,
        )
        policy = retention_policy(settings)
    except ConfigurationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FATAL

    if args.save:
        update_settings(
            working_dir,
            manifest_path=str(expand_path(manifest)),
            destination_root=str(config.destination_root),
            log_extensions=list(config.log_extensions),
            default_log_action=config.default_log_action.value,
        )

    use_prompt = settings.get("prompt_for_log_action") if args.prompt is None else args.prompt
    resolver = interactive_resolver(config.default_log_action) if use_prompt else None

    service = BackupService(config, retention=policy, resolve_log_action=resolver)
    print(f"Backing up from {manifest} into {config.destination_root}")
    try:
        outcome = service.run(expand_path(manifest), on_result=_print_result)
    except FatalBackupError as exc:
        LOGGER.error("backup aborted: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FATAL

    _print_summary(outcome)
    return EXIT_OK if outcome.report.failed == 0 else EXIT_TASK_FAILED


if __name__ == "__main__":
    sys.exit(main())
