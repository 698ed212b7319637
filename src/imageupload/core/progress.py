"""Operator-facing progress output on stderr."""

import sys
from typing import TextIO


class ProgressReporter:
    """Writes terse progress text, dots and status lines to a stream.

    Consecutive identical status messages collapse into a run of dots; a
    changed message starts a new line.
    """

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream
        self._last_status: str | None = None

    @property
    def stream(self) -> TextIO:
        # Resolved lazily so pytest's capsys replacement of sys.stderr is seen
        return self._stream if self._stream is not None else sys.stderr

    def say(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def line(self, text: str) -> None:
        self.say(text + "\n")

    def dot(self) -> None:
        self.say(".")

    def done(self) -> None:
        self.say(" done.\n")
        self._last_status = None

    def status(self, prefix: str, message: str) -> None:
        """Report a status message, collapsing repeats into dots."""
        if self._last_status is None:
            self.say(f"{prefix}: {message}")
        elif message != self._last_status:
            self.say(f"\n{prefix}: {message}")
        else:
            self.dot()
        self._last_status = message
