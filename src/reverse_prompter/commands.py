"""The "Generate Reverse Prompt" action wired to an editor."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal

from .ai.prompter import RequestConfiguration, ReversePrompter
from .context.extractor import ContextExtractor
from .editor.buffer import EditorProtocol
from .errors import ProviderError, ReversePromptError
from .notifications import LoggingNotifier, Notifier
from .services.settings import Settings

LOGGER = logging.getLogger(__name__)

COMMAND_ID = "reverse-prompt-command"
COMMAND_TITLE = "Generate Reverse Prompt"

# user-caused refusals stay below the console threshold
_SEVERITY_LEVELS = {"warning": logging.INFO, "error": logging.WARNING}

OutcomeStatus = Literal["completed", "rejected", "failed", "cancelled"]


@dataclass(slots=True)
class GenerationOutcome:
    """What one invocation of the command did to the document."""

    status: OutcomeStatus
    text: str = ""
    error: ReversePromptError | None = None

    @property
    def ok(self) -> bool:
        return self.status == "completed"


class GenerateReversePromptCommand:
    """Extracts context, streams the model's question and inserts it.

    Rejections (busy, missing key, short input, bad configuration) leave the
    document untouched. A provider failure mid-stream keeps whatever text was
    already inserted and skips the postfix.
    """

    id = COMMAND_ID
    title = COMMAND_TITLE

    def __init__(
        self,
        settings: Settings,
        *,
        prompter: ReversePrompter | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self._settings = settings
        self._notifier = notifier or LoggingNotifier()
        self._prompter = prompter or ReversePrompter(notifier=self._notifier)

    @property
    def prompter(self) -> ReversePrompter:
        return self._prompter

    async def run(self, editor: EditorProtocol) -> GenerationOutcome:
        config = RequestConfiguration.from_settings(self._settings)
        try:
            extractor = ContextExtractor.from_settings(self._settings)
            context_text = extractor.extract_from_editor(editor)
            stream = self._prompter.generate(context_text, config)
        except ReversePromptError as exc:
            LOGGER.log(_log_level(exc), "Reverse prompt rejected: %s", exc)
            self._notifier.notify(exc.message)
            return GenerationOutcome(status="rejected", error=exc)

        inserted: list[str] = []
        async with stream:
            _prepare_insertion_point(editor)
            editor.insert_at_cursor(config.prefix)
            try:
                async for fragment in stream:
                    editor.insert_at_cursor(fragment)
                    inserted.append(fragment)
            except ProviderError as exc:
                self._notifier.notify(exc.message)
                return GenerationOutcome(status="failed", text="".join(inserted), error=exc)
            except asyncio.CancelledError:
                LOGGER.info("Reverse prompt cancelled after %s fragment(s)", len(inserted))
                raise
            if stream.cancelled:
                LOGGER.info("Reverse prompt stopped early; skipping postfix")
                return GenerationOutcome(status="cancelled", text="".join(inserted))
            editor.insert_at_cursor(config.postfix)

        return GenerationOutcome(status="completed", text="".join(inserted))


def _log_level(exc: ReversePromptError) -> int:
    return _SEVERITY_LEVELS.get(exc.severity, logging.WARNING)


def _prepare_insertion_point(editor: EditorProtocol) -> None:
    """Park the cursor after any selection and make sure its line is empty."""

    if editor.has_selection():
        ranges = editor.list_selection_ranges()
        editor.set_cursor(max(item.end for item in ranges))
    cursor = editor.get_cursor()
    if editor.get_line_text(cursor.line) != "":
        editor.insert_at_cursor("\n")


__all__ = [
    "COMMAND_ID",
    "COMMAND_TITLE",
    "GenerateReversePromptCommand",
    "GenerationOutcome",
]
