"""Exception types raised by the assistant bot."""

from __future__ import annotations


class RelayAgentError(Exception):
    """Base class for all errors raised by this package."""


class MissingCredentialsError(RelayAgentError):
    """A required credential is absent at startup."""


class MemoryPersistenceError(RelayAgentError):
    """Writing a memory document to its backing file failed."""

    def __init__(self, key: str, cause: OSError) -> None:
        super().__init__(f"Failed to persist memory '{key}': {cause}")
        self.key = key
        self.cause = cause
