"""Reverse prompter: asks the model one question about the text behind the cursor."""

from .ai.prompter import RequestConfiguration, RequestState, ReversePrompter
from .commands import GenerateReversePromptCommand, GenerationOutcome
from .context.extractor import ContextExtractor, NoDividerFallback, extract
from .services.settings import Settings, SettingsStore

__all__ = [
    "ContextExtractor",
    "GenerateReversePromptCommand",
    "GenerationOutcome",
    "NoDividerFallback",
    "RequestConfiguration",
    "RequestState",
    "ReversePrompter",
    "Settings",
    "SettingsStore",
    "extract",
]

__version__ = "0.1.0"
