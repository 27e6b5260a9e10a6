from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Final

log: Final = logging.getLogger("event-tracker")


class CredentialRotator:
    """Round-robin over API keys, moving on after a fixed number of calls."""

    def __init__(self, credentials: Sequence[str], *, rotate_every: int = 65) -> None:
        if rotate_every <= 0:
            raise ValueError("rotate_every must be positive")
        self._credentials = [c for c in credentials if c]
        self._rotate_every = rotate_every
        self._index = 0
        self._calls = 0
        if not self._credentials:
            log.warning("No Hypixel API keys configured for the event tracker")
        else:
            log.info("Loaded %d Hypixel API key(s) for event tracker", len(self._credentials))

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def index(self) -> int:
        return self._index

    @property
    def call_count(self) -> int:
        return self._calls

    def next(self) -> str | None:
        if not self._credentials:
            return None
        if self._calls > 0 and self._calls % self._rotate_every == 0:
            self._rotate()
        self._calls += 1
        return self._credentials[self._index]

    def advance(self) -> str | None:
        """Skip to the next credential immediately, e.g. after it was rejected."""
        if not self._credentials:
            return None
        self._rotate()
        return self._credentials[self._index]

    def _rotate(self) -> None:
        self._index = (self._index + 1) % len(self._credentials)
        log.info(
            "Rotated to API key %d/%d after %d requests",
            self._index + 1,
            len(self._credentials),
            self._calls,
        )
