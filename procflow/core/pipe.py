"""
PipeLink: one-way byte conduit between two pipeline stages.
"""

from __future__ import annotations

import os
from typing import BinaryIO


class PipeLink:
    """An OS pipe with a read end and a write end.

    The writer is handed to the upstream process as its stdout and the
    reader to the downstream process as its stdin. Closing the writer (after
    the upstream process has exited) lets the reader observe end-of-stream.
    """

    def __init__(self) -> None:
        r, w = os.pipe()
        self.reader: BinaryIO = os.fdopen(r, "rb")
        self.writer: BinaryIO = os.fdopen(w, "wb", buffering=0)

    @property
    def writer_closed(self) -> bool:
        return self.writer.closed

    @property
    def reader_closed(self) -> bool:
        return self.reader.closed

    def write(self, data: bytes) -> int:
        # raises ValueError once the writer is closed
        return self.writer.write(data)

    def read(self, size: int = -1) -> bytes:
        return self.reader.read(size)

    def close_writer(self) -> None:
        if not self.writer.closed:
            self.writer.close()

    def close_reader(self) -> None:
        if not self.reader.closed:
            self.reader.close()

    def close(self) -> None:
        self.close_writer()
        self.close_reader()

    def __enter__(self) -> "PipeLink":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
