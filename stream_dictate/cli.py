"""Command-line interface: replay recorded fragments through a dictation session."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

from .config import (
    DEFAULT_LLM_TEMP,
    DEFAULT_LLM_TIMEOUT,
    ReconcilerConfig,
)
from .fragments import FragmentParseError, read_fragments
from .llm_cleanup import LLMCleaner
from .logging_config import setup_logging
from .pipeline import DictationPipeline
from .session import ReconciliationSession
from .settings_store import (
    LLM_API_KEY,
    CredentialStorageError,
    delete_credential,
    get_llm_api_key,
    load_settings,
    save_settings,
)
from .shortcuts import SHORTCUTS_FILE, ShortcutRule, ShortcutTable
from .sink import BufferTextSink, ClipboardTextSink, describe_operation

logger = logging.getLogger("stream_dictate")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stream-dictate",
        description="Reconcile streamed speech-to-text fragments into clean text",
    )
    parser.add_argument(
        "input",
        nargs="?",
        default="-",
        help="JSON-lines file of fragments ({text, is_final, sequence}); '-' for stdin",
    )
    parser.add_argument("--show-ops", action="store_true", help="Print each sink operation")
    parser.add_argument("--copy", action="store_true", help="Mirror the result to the clipboard")
    parser.add_argument("--block", action="store_true", help="Hide interim text and emit finals at the end")
    parser.add_argument("--shortcuts", default=None, help="Shortcut table JSON file")
    parser.add_argument("--no-shortcuts", action="store_true", help="Disable shortcut expansion")

    group = parser.add_argument_group("shortcut and credential management (no replay)")
    group.add_argument(
        "--add-shortcut",
        nargs=2,
        metavar=("TRIGGERS", "REPLACEMENT"),
        help="Add a shortcut; separate several triggers with '|'",
    )
    group.add_argument("--remove-shortcut", metavar="TRIGGER", help="Remove a shortcut trigger")
    group.add_argument("--import-shortcuts", metavar="CSV", help="Import shortcuts from a CSV file")
    group.add_argument("--export-shortcuts", action="store_true", help="Print shortcuts as CSV")
    group.add_argument(
        "--default-shortcuts", action="store_true", help="Replace the shortcut table with the defaults"
    )
    group.add_argument("--set-llm-key", metavar="KEY", help="Store the LLM API key in the keyring")
    group.add_argument("--clear-llm-key", action="store_true", help="Remove the stored LLM API key")

    parser.add_argument("--llm", action="store_true", help="Enable LLM cleanup of final text")
    parser.add_argument("--no-llm", action="store_true", help="Disable LLM cleanup entirely")
    parser.add_argument("--llm-endpoint", default=None, help="OpenAI-compatible base URL")
    parser.add_argument("--llm-model", default=None, help="Model name served by your endpoint")
    parser.add_argument("--llm-key", default=None, help="API key if your endpoint requires one")
    parser.add_argument(
        "--llm-temp",
        type=float,
        default=None,
        help=f"Temperature for the cleanup request (default: saved setting or {DEFAULT_LLM_TEMP})",
    )
    parser.add_argument(
        "--llm-timeout",
        type=float,
        default=None,
        help=f"Seconds to wait for cleanup before using the local text (default: saved setting or {DEFAULT_LLM_TIMEOUT})",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser


def build_pipeline(args: argparse.Namespace, settings: dict) -> DictationPipeline:
    config = ReconcilerConfig.from_settings(settings)

    if args.shortcuts:
        shortcuts = ShortcutTable.load(Path(args.shortcuts))
    elif args.no_shortcuts:
        shortcuts = None
    else:
        shortcuts = ShortcutTable.load()
        shortcuts.enabled = shortcuts.enabled and bool(settings.get("shortcuts_enabled", True))

    session = ReconciliationSession(config, shortcuts=shortcuts)
    sink = ClipboardTextSink() if args.copy else BufferTextSink()

    # Command-line values win over saved settings
    overrides = {
        "llm_endpoint": args.llm_endpoint,
        "llm_model": args.llm_model,
        "llm_temp": args.llm_temp,
        "llm_timeout": args.llm_timeout,
        "llm_debug": True if args.debug else None,
    }
    llm_settings = {**settings, **{k: v for k, v in overrides.items() if v is not None}}
    timeout = float(llm_settings.get("llm_timeout", DEFAULT_LLM_TIMEOUT))

    cleaner = None
    if not args.no_llm and (args.llm or settings.get("llm_enabled")):
        cleaner = LLMCleaner.from_settings(llm_settings, api_key=args.llm_key or get_llm_api_key())
        print(f"(LLM) enabled: {cleaner.model} @ {cleaner.endpoint}", file=sys.stderr)

    return DictationPipeline(
        session,
        sink,
        cleaner=cleaner,
        cleaner_timeout=timeout,
        block_mode=args.block or bool(settings.get("block_mode", False)),
    )


def manage(args: argparse.Namespace, settings: dict) -> Optional[int]:
    """Run a shortcut or credential management action.

    Returns:
        Exit code when an action ran, None when the fragments should be replayed
    """
    if args.set_llm_key is not None:
        if not args.set_llm_key.strip():
            print("API key must not be empty", file=sys.stderr)
            return 2
        if not save_settings({**settings, "llm_key": args.set_llm_key}):
            print("Could not save settings", file=sys.stderr)
            return 1
        print("LLM API key saved", file=sys.stderr)
        return 0

    if args.clear_llm_key:
        try:
            delete_credential(LLM_API_KEY)
        except CredentialStorageError as e:
            print(f"Could not remove LLM API key: {e}", file=sys.stderr)
            return 1
        print("LLM API key removed", file=sys.stderr)
        return 0

    path = Path(args.shortcuts) if args.shortcuts else SHORTCUTS_FILE

    if args.export_shortcuts:
        print(ShortcutTable.load(path).export_csv())
        return 0

    if args.default_shortcuts:
        table = ShortcutTable.with_defaults()
    elif args.add_shortcut or args.remove_shortcut or args.import_shortcuts:
        table = ShortcutTable.load(path)
        if args.import_shortcuts:
            try:
                csv_text = Path(args.import_shortcuts).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                print(f"Could not read {args.import_shortcuts}: {e}", file=sys.stderr)
                return 1
            table.import_csv(csv_text)
        if args.add_shortcut:
            triggers, replacement = args.add_shortcut
            rule = ShortcutRule(triggers=triggers.split("|"), replacement=replacement)
            if not rule.triggers or not replacement.strip():
                print("Shortcut needs a trigger and a replacement", file=sys.stderr)
                return 2
            table.add_rule(rule)
        if args.remove_shortcut:
            table.remove_trigger(args.remove_shortcut)
    else:
        return None

    if not table.save(path):
        print(f"Could not save shortcuts to {path}", file=sys.stderr)
        return 1
    print(f"Saved {len(table.rules)} shortcut rules to {path}", file=sys.stderr)
    return 0


def replay(pipeline: DictationPipeline, source: TextIO, show_ops: bool, out: TextIO) -> str:
    """Run every fragment from ``source`` through ``pipeline`` and return the sink text."""
    for fragment in read_fragments(source):
        operations = pipeline.process(fragment)
        if show_ops:
            for operation in operations:
                print(f"#{fragment.sequence:<4} {describe_operation(operation)}", file=out)

    for operation in pipeline.stop():
        if show_ops:
            print(f"flush {describe_operation(operation)}", file=out)
    return pipeline.sink.current_value()


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(logging.DEBUG if args.debug else logging.WARNING)
    settings = load_settings()

    status = manage(args, settings)
    if status is not None:
        return status

    pipeline = build_pipeline(args, settings)

    try:
        if args.input == "-":
            text = replay(pipeline, sys.stdin, args.show_ops, sys.stdout)
        else:
            with open(args.input, encoding="utf-8") as source:
                text = replay(pipeline, source, args.show_ops, sys.stdout)
    except FragmentParseError as e:
        print(f"Invalid fragment input: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        print(f"Could not read {args.input}: {e}", file=sys.stderr)
        return 1

    print(text.strip())
    if args.copy and not getattr(pipeline.sink, "copy_failed", False):
        print("(copied to clipboard)", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
