from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import BinaryIO

from nit.results import Completion, FormattedLine


class SequencerError(RuntimeError):
    pass


@dataclass(slots=True)
class OutputSink:
    stream: BinaryIO
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def write_line(self, text: str) -> None:
        data = text.encode("utf-8", errors="surrogateescape")
        if not data.endswith(b"\n"):
            data += b"\n"
        with self._lock:
            self.stream.write(data)
            self.stream.flush()


@dataclass(slots=True)
class Sequencer:
    sink: OutputSink
    total: int
    released: int = 0
    _pending: dict[int, FormattedLine] = field(default_factory=dict, repr=False)

    def accept(self, completion: Completion) -> int:
        index = completion.index
        if index < self.released or index in self._pending:
            raise SequencerError(f"Duplicate result for target index {index}.")
        if not 0 <= index < self.total:
            raise SequencerError(f"Target index {index} out of range (total={self.total}).")
        self._pending[index] = completion.line

        flushed = 0
        while self.released in self._pending:
            self.sink.write_line(self._pending.pop(self.released).display)
            self.released += 1
            flushed += 1
        return flushed

    @property
    def buffered(self) -> int:
        return len(self._pending)

    @property
    def finished(self) -> bool:
        return self.released == self.total
