"""Error types. Library errors are wrapped where they are recovered."""

from __future__ import annotations


class OllamaChatError(Exception):
    """Base error for the package."""


class ModelStreamError(OllamaChatError):
    """Model backend failed while producing fragments."""


class StoreWriteError(OllamaChatError):
    """A conversation store write was not acknowledged."""

    def __init__(self, partition_key: str, item_key: str, reason: str) -> None:
        super().__init__(f"store write failed for {partition_key}/{item_key}: {reason}")
        self.partition_key = partition_key
        self.item_key = item_key
        self.reason = reason


class AggregatorStateError(OllamaChatError):
    """Operation not allowed in the aggregator's current state."""
