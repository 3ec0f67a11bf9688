"""Command line interface for i18nsync."""

from __future__ import annotations

import argparse
import logging
import pathlib
import sys
from typing import Iterable, List, Optional

from .configuration import RunConfig, get_settings
from .errors import (
    ConfigurationError,
    DuplicateKeyConflict,
    GlossaryError,
    I18nSyncError,
)
from .runner import ScanRunner, ScanSummary
from .sources import collect_directory


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="i18nsync",
        description=(
            "Extract user-facing strings from Python sources, replace them with "
            "translation keys and keep locale files in sync."
        ),
    )
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument(
        "--file",
        help="Rewrite a single file only; locale files are left untouched.",
    )
    scope.add_argument(
        "--directory",
        help="Rewrite every Python file below a directory; locale files are left untouched.",
    )
    parser.add_argument(
        "--config-dir",
        help="Directory holding config.yaml/.env (default: current directory).",
    )
    parser.add_argument(
        "-l",
        "--locales-dir",
        help="Directory holding <language>.json locale files and glossaries.csv.",
    )
    parser.add_argument(
        "-s",
        "--origin-lang",
        help="Language the source strings are written in (e.g. en, zh-CN).",
    )
    parser.add_argument(
        "-t",
        "--target-lang",
        action="append",
        help="Target language code (repeatable or comma separated).",
    )
    parser.add_argument(
        "-e",
        "--entry",
        action="append",
        help="Glob of source files to scan, relative to the config directory (repeatable).",
    )
    parser.add_argument(
        "-x",
        "--exclude",
        action="append",
        help="Glob of source files to skip (repeatable).",
    )
    parser.add_argument(
        "--text-pattern",
        help="Only extract literals matching this regular expression.",
    )
    parser.add_argument(
        "--ignore-call",
        action="append",
        help="Call name whose string arguments are never extracted (repeatable).",
    )
    parser.add_argument(
        "-p",
        "--provider",
        help="Translation provider identifier (openai, legacy-openai, echo).",
    )
    parser.add_argument(
        "-m",
        "--model",
        help="Provider-specific model or deployment identifier.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Parallel workers for file analysis and per-language translation (default: 1).",
    )
    parser.add_argument(
        "--skip-existing",
        action="store_true",
        help="Do not re-translate keys that already exist in a target locale file.",
    )
    parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Report what would change without writing any file.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    return parser


def configure_logging(*, verbose: bool, debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(name)s: %(message)s")


def execute_scan(
    args: argparse.Namespace,
) -> tuple[int, ScanSummary | None, str | None]:
    """Execute a scan run and return the exit code, summary, and message."""

    config_dir = (
        pathlib.Path(args.config_dir).expanduser().resolve() if args.config_dir else None
    )
    files: Optional[List[pathlib.Path]] = None
    if args.file:
        path = pathlib.Path(args.file).expanduser().resolve()
        if not path.is_file():
            return 1, None, f"Input file not found: {path}"
        files = [path]
    elif args.directory:
        directory = pathlib.Path(args.directory).expanduser().resolve()
        if not directory.is_dir():
            return 1, None, f"Directory not found: {directory}"

    try:
        settings = get_settings(config_dir)
        config = RunConfig.from_settings(
            settings,
            base_dir=config_dir,
            locales_dir=args.locales_dir,
            origin_language=args.origin_lang,
            target_languages=",".join(args.target_lang) if args.target_lang else None,
            entry=args.entry,
            exclude=args.exclude,
            text_pattern=args.text_pattern,
            ignored_calls=args.ignore_call,
            provider_name=args.provider,
            model=args.model,
            workers=args.workers,
            skip_existing=args.skip_existing or None,
            dry_run=args.dry_run or None,
            verbose=args.verbose or None,
            provider_debug=args.debug_provider or None,
            update_locales=False if (args.file or args.directory) else None,
        )
        if args.directory:
            files = collect_directory(
                pathlib.Path(args.directory).expanduser().resolve(), config.exclude
            )
        summary = ScanRunner(config).run(files)
    except DuplicateKeyConflict as exc:
        return 1, None, f"{exc}\nNo locale file was written."
    except (ConfigurationError, GlossaryError) as exc:
        return 1, None, str(exc)
    except I18nSyncError as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Scan interrupted by user."

    return (0 if summary.ok else 1), summary, None


def print_summary(summary: ScanSummary) -> None:
    """Output a friendly report once processing completes."""

    print("\nScan complete." + (" (dry run, nothing written)" if summary.dry_run else ""))
    print(
        f"  Source files:    {summary.files_changed} changed / {summary.files_scanned} scanned"
        f" ({len(summary.failed_files)} failed)"
    )
    print(
        f"  Extracted:       {summary.entries_extracted} literals, "
        f"{summary.keys_extracted} unique keys"
    )
    if summary.provider_name:
        print(f"  Provider:        {summary.provider_name}")
    for outcome in summary.languages:
        if outcome.synchronized:
            print(
                f"  [{outcome.language}] synchronized: {outcome.keys_written} keys "
                f"({outcome.keys_translated} translated, {outcome.keys_pinned} pinned)"
            )
        else:
            print(f"  [{outcome.language}] FAILED: {outcome.error}")
    for path in summary.failed_files:
        print(f"  [file] FAILED: {path}")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    if summary.error_messages:
        print("  Notes:")
        for message in summary.error_messages:
            print(f"    - {message}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    configure_logging(verbose=args.verbose, debug=args.debug)

    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be at least 1")

    exit_code, summary, message = execute_scan(args)

    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
