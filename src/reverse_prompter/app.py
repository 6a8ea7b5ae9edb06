"""Command line entry point for running the reverse prompt on a file."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence, TextIO, get_args, get_origin, get_type_hints

from .commands import GenerateReversePromptCommand, GenerationOutcome
from .editor.buffer import Position, TextBufferEditor
from .errors import ConfigurationError
from .notifications import Notifier
from .services.settings import Settings, SettingsStore, redact_secret
from .utils import file_io
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
# inserted verbatim around the question, so "\n" and "\t" are unescaped here
_ESCAPED_FIELDS = frozenset({"prefix", "postfix"})
_LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NOT_GENERATED = 1
EXIT_USAGE = 2


class StderrNotifier:
    """Prints notifications on stderr so stdout only carries the document."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def notify(self, message: str) -> None:
        _LOGGER.debug("notify: %s", message)
        destination = self._stream or sys.stderr
        destination.write(f"{message}\n")
        destination.flush()


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    level = logging.DEBUG if debug else logging.WARNING
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Path | None = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings. Invalid values raise ``ConfigurationError``."""

    active_store = store or SettingsStore(path)
    return active_store.load(overrides=overrides)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``reverse-prompter`` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = args.debug or _env_flag("REVERSE_PROMPTER_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("REVERSE_PROMPTER_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    store = SettingsStore(resolved_path)
    try:
        overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return EXIT_USAGE

    try:
        settings = load_settings(resolved_path, store=store, overrides=overrides or None)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        return EXIT_USAGE

    if args.dump_settings:
        _dump_settings(settings, store, overrides=overrides)
        return EXIT_OK

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    if args.file is None:
        parser.print_usage(sys.stderr)
        print(
            "reverse-prompter: error: FILE is required unless --dump-settings is given",
            file=sys.stderr,
        )
        return EXIT_USAGE

    try:
        loaded = file_io.read_text(args.file)
        editor = _build_editor(loaded.text, args)
    except (OSError, UnicodeDecodeError, ValueError) as exc:
        print(f"Cannot open {args.file}: {exc}", file=sys.stderr)
        return EXIT_USAGE

    outcome = run_command(settings, editor, notifier=StderrNotifier())

    if outcome.status != "rejected":
        if args.in_place:
            file_io.write_text(
                args.file,
                editor.get_full_text(),
                encoding=loaded.encoding,
                newline=loaded.newline,
            )
        else:
            sys.stdout.write(editor.get_full_text())
            sys.stdout.flush()
    return EXIT_OK if outcome.ok else EXIT_NOT_GENERATED


def run_command(
    settings: Settings,
    editor: TextBufferEditor,
    *,
    notifier: Notifier | None = None,
) -> GenerationOutcome:
    """Run the generate command to completion on a fresh event loop."""

    command = GenerateReversePromptCommand(settings, notifier=notifier)
    try:
        return asyncio.run(command.run(editor))
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Generation interrupted by user.")
        return GenerationOutcome(status="cancelled")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reverse-prompter",
        description="Ask the model one question about the text behind the cursor and insert it.",
    )
    parser.add_argument("file", nargs="?", type=Path, help="Markdown or text document to work on.")
    cursor = parser.add_mutually_exclusive_group()
    cursor.add_argument("--offset", type=int, metavar="N", help="Cursor as a character offset.")
    cursor.add_argument("--line", type=int, metavar="L", help="Cursor line (1-based).")
    parser.add_argument(
        "--column", type=int, metavar="C", help="Cursor column (1-based, default end of line)."
    )
    parser.add_argument(
        "--selection", metavar="START:END", help="Selected character range; overrides the cursor."
    )
    parser.add_argument(
        "--in-place", action="store_true", help="Write the result back to FILE instead of stdout."
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.reverse_prompter/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    return parser


def _build_editor(text: str, args: argparse.Namespace) -> TextBufferEditor:
    editor = TextBufferEditor(text, path=args.file)
    if args.selection:
        start, end = _parse_selection(args.selection)
        editor.set_selection(start, end)
    elif args.offset is not None:
        editor.set_cursor(args.offset)
    elif args.line is not None:
        line = max(0, args.line - 1)
        column = len(editor.get_line_text(line)) if args.column is None else max(0, args.column - 1)
        editor.set_cursor(Position(line=line, ch=column))
    return editor


def _parse_selection(value: str) -> tuple[int, int]:
    if ":" not in value:
        raise ValueError(f"Selection '{value}' must use START:END syntax.")
    start, end = value.split(":", 1)
    return int(start, 10), int(end, 10)


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        if type(None) in get_args(annotation) and raw_value.strip().lower() in {"none", "null"}:
            overrides[key] = None
            continue
        if key in _ESCAPED_FIELDS:
            overrides[key] = raw_value.replace("\\n", "\n").replace("\\t", "\t")
            continue
        overrides[key] = _coerce_value(annotation, raw_value)
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if target is str:
        return raw_value
    if target is bool:
        return _parse_bool(normalized)
    if target is float:
        return float(normalized)
    if target is int:
        return int(normalized, 10)
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(settings.api_key)
    metadata = {
        "path": str(store.path),
        "secret_backend": store.vault.strategy,
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("REVERSE_PROMPTER_"))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
