"""Model client and request sequencing."""

from .client import AIClient, ClientSettings
from .prompter import FragmentStream, RequestConfiguration, RequestState, ReversePrompter

__all__ = [
    "AIClient",
    "ClientSettings",
    "FragmentStream",
    "RequestConfiguration",
    "RequestState",
    "ReversePrompter",
]
