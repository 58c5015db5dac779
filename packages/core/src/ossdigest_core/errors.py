"""Exception hierarchy shared by every ossdigest package."""

from __future__ import annotations


class DigestError(Exception):
    """Base class for all ossdigest errors."""


class ConfigError(DigestError):
    """Configuration is missing or invalid. Fatal at startup."""


class LLMError(DigestError):
    """The language model provider failed to return a response."""


class FetchError(DigestError):
    """Repository data could not be fetched from GitHub."""
