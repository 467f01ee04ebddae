"""
goal: "latest request wins" bookkeeping for diff runs triggered by typing. every run is tagged with a
      generation number when it starts. when it finishes, its result is only committed if no newer
      run has started in the meantime. older results are dropped, never shown.

nothing is cancelled mid-computation, a superseded run just has its result ignored.
"""

from __future__ import annotations

import logging
import threading

from algorithm.text_diff import AnnotatedLine, compute_diff
from algorithm.tokenizer import NormalizationSettings

session_logger = logging.getLogger("tooldeck.diff")


class DiffSession:
    """owns the generation counter and the last committed diff for one caller (one browser tab)."""

    def __init__(self) -> None:
        self._latest = 0  # newest generation handed out or announced
        self._committed = 0  # generation of the lines currently held
        self._lock = threading.Lock()  # the dashboard serves requests from several threads
        self.lines: list[AnnotatedLine] = []

    @property
    def latest(self) -> int:
        return self._latest

    @property
    def committed(self) -> int:
        return self._committed

    def begin(self, generation: int | None = None) -> int:
        """
        start a run and return its generation. callers that number their own requests pass the
        number in, anything not newer than what we have already seen is stale from the start.
        """
        with self._lock:
            if generation is None:
                self._latest += 1
                return self._latest
            if generation > self._latest:
                self._latest = generation
            return generation

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._latest

    def commit(self, generation: int, lines: list[AnnotatedLine]) -> bool:
        """store lines if generation is still the newest. returns False for a superseded run."""
        with self._lock:
            if generation != self._latest:
                session_logger.debug(
                    "dropping stale diff result (generation %d, latest %d)", generation, self._latest
                )
                return False
            self._committed = generation
            self.lines = lines
            return True

    def run(
        self,
        old_text: str,
        new_text: str,
        settings: NormalizationSettings | None = None,
        generation: int | None = None,
        max_line_tokens: int | None = None,
    ) -> tuple[int, list[AnnotatedLine] | None]:
        """begin, compute, commit. returns (generation, lines) or (generation, None) when stale."""
        gen = self.begin(generation)
        if not self.is_current(gen):
            return gen, None
        lines = compute_diff(old_text, new_text, settings, max_line_tokens)
        if not self.commit(gen, lines):
            return gen, None
        return gen, lines

    def clear(self) -> None:
        # a clear is itself a newer state, anything still running becomes stale
        with self._lock:
            self._latest += 1
            self._committed = self._latest
            self.lines = []
