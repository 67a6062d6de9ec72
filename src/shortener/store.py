"""
=============================================================================
IN-MEMORY CODE STORE
=============================================================================

The only mutable state shared between worker threads: a mapping from short
code to the URL that produced it.

=============================================================================
CONCURRENCY
=============================================================================

Every worker thread can touch the store at the same time, so every
operation runs under one lock:

    Worker A                    Lock                    Worker B
       │                          │                        │
       │── insert_or_get("x") ──► │                        │
       │   check "x" absent       │ ◄── insert_or_get("x")─│
       │   insert "x"             │      (waits)           │
       │ ◄── "x" ──────────────── │                        │
       │                          │   check "x" present    │
       │                          │── "x" ───────────────► │

The check and the insert happen inside the same critical section, so two
workers racing on a new code cannot both believe they inserted it.

The lock is held for one dict operation at a time and never while doing
I/O, and no code path takes it twice, so it cannot deadlock.

=============================================================================
FIRST WRITER WINS
=============================================================================

djb2 collides. When a second URL hashes to an occupied code, the existing
entry is kept and its code is returned. There is no probing and no error.

=============================================================================
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UrlEntry:
    """A stored mapping from short code to original URL."""

    code: str
    target: str


class CodeStore:
    """
    Thread-safe mapping of short code → UrlEntry.

    One instance is created at startup and handed to the handlers, so tests
    can build an independent store per case.

    Usage:
        store = CodeStore()
        code = store.insert_or_get("k902KW0", "https://www.theobeers.com/")
        entry = store.get(code)
    """

    def __init__(self):
        self._entries: Dict[str, UrlEntry] = {}
        self._lock = threading.Lock()

    def get(self, code: str) -> Optional[UrlEntry]:
        """
        Look up a code.

        Returns:
            The stored entry, or None if the code is unknown.
        """
        with self._lock:
            return self._entries.get(code)

    def insert_or_get(self, code: str, target: str) -> str:
        """
        Store ``target`` under ``code`` unless the code is already taken.

        Args:
            code: Short code derived from the target.
            target: The original URL.

        Returns:
            The code of the stored entry (always ``code``).
        """
        with self._lock:
            existing = self._entries.get(code)
            if existing is None:
                self._entries[code] = UrlEntry(code=code, target=target)
                return code

        if existing.target != target:
            logger.debug(f"Code {code} already maps to a different URL, keeping the first")
        return existing.code

    def snapshot(self) -> Dict[str, UrlEntry]:
        """Return a point-in-time copy of all entries."""
        with self._lock:
            return dict(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, code: object) -> bool:
        with self._lock:
            return code in self._entries
