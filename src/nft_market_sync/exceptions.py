"""Exception taxonomy for the sync engine."""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for all nft_market_sync errors."""

    def __init__(self, message: str, details: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class RangeTooLargeError(SyncError):
    """The node rejected a log query because its block span was too wide."""

    def __init__(self, from_block: int, to_block: int, reason: str = "") -> None:
        super().__init__(
            "block range too large",
            {"from_block": from_block, "to_block": to_block, "reason": reason},
        )
        self.from_block = from_block
        self.to_block = to_block


class TransientError(SyncError):
    """Network or provider hiccup. Not retried by the log source."""


class DecodeError(SyncError):
    """A raw log could not be mapped to a market event."""


class FatalError(SyncError):
    """Invalid arguments detected before any network call."""


class ConfigError(FatalError):
    """Malformed configuration."""


class EngineStoppedError(SyncError):
    """The engine was used after stop()."""
