from __future__ import annotations


class UnknownLoad(KeyError):
    """A control command referenced a load id the store does not know."""

    def __init__(self, load_id: str) -> None:
        super().__init__(load_id)
        self.load_id = load_id

    def __str__(self) -> str:
        return f"Unknown loadId: {self.load_id!r}"


class ConnectivityFailure(RuntimeError):
    """Status fetch failed: transport error, timeout, non-2xx or bad body."""


class CommandFailure(RuntimeError):
    """Control command could not be delivered or was rejected."""
