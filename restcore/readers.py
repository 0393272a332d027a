"""Body readers: chunked, fixed length, empty, and raw socket input."""

from __future__ import annotations

import logging
import string
import time
import weakref
from itertools import count
from typing import Any, Optional

from restcore.errors import ObjectExpiredError, ParseError, ProtocolError
from restcore.stream import AddHeader, DataReader, DataReaderStream

log = logging.getLogger(__name__)

DEFAULT_LINE_LENGTH = 80
IO_BUFFER_SIZE = 1024 * 16
MAX_READ_RETRIES = 16
RETRY_DELAY = 0.05

_PRINTABLE = frozenset(range(0x20, 0x7F))


def to_printable(data: bytes, line_length: int = DEFAULT_LINE_LENGTH) -> str:
    """Render bytes for a log line, replacing unprintable bytes with dots."""
    parts = ["\n"]
    for pos, byte in enumerate(data, start=1):
        if pos % line_length == 0:
            parts.append("\n")
        parts.append(chr(byte) if byte in _PRINTABLE else ".")
    return "".join(parts)


class ChunkedReader(DataReader):
    """Decodes a chunked transfer-encoded body from a DataReaderStream."""

    def __init__(self, add_header: AddHeader, source: DataReaderStream) -> None:
        self._add_header = add_header
        self._stream = source
        self._chunk_len = 0
        self._eat_padding = False

    def is_eof(self) -> bool:
        return self._stream.is_eof()

    def finish(self) -> None:
        self.read_some()
        if not self.is_eof():
            raise ProtocolError("Failed to finish chunked payload")
        self._stream.finish()

    def read_some(self) -> bytes:
        self._consume_padding()
        if self._stream.is_eof():
            return b""

        if self._chunk_len == 0:
            self._chunk_len = self._next_chunk_len()
            log.debug("ChunkedReader: next chunk is %d bytes", self._chunk_len)
            if self._chunk_len == 0:
                self._stream.read_header_lines(self._add_header)
                self._stream.set_eof()
                return b""

        data = self._stream.get_data(self._chunk_len)
        self._chunk_len -= len(data)
        if self._chunk_len == 0:
            self._eat_padding = True

        if log.isEnabledFor(logging.DEBUG):
            log.debug("ChunkedReader.read_some # %d bytes: %s",
                      len(data), to_printable(data))
        return data

    def _consume_padding(self) -> None:
        if not self._eat_padding:
            return
        self._eat_padding = False
        if self._stream.getc() != "\r":
            raise ParseError("Chunk: Missing padding CR!")
        if self._stream.getc() != "\n":
            raise ParseError("Chunk: Missing padding LF!")

    def _next_chunk_len(self) -> int:
        ch = self._stream.getc()
        if ch not in string.hexdigits:
            raise ParseError("Missing chunk-length in new chunk.")

        chunk_len = 0
        while ch in string.hexdigits:
            chunk_len = chunk_len * 16 + int(ch, 16)
            ch = self._stream.getc()

        # Skip any chunk extensions up to the end of the line.
        while ch != "\r":
            ch = self._stream.getc()

        if self._stream.getc() != "\n":
            raise ParseError("Missing LF in first chunk line")
        return chunk_len


class PlainReader(DataReader):
    """Reads a body of known length."""

    def __init__(self, content_length: int, source: Optional[DataReader]) -> None:
        self._remaining = content_length
        self._source = source

    def is_eof(self) -> bool:
        return self._remaining == 0

    def finish(self) -> None:
        if self._source is not None:
            self._source.finish()

    def read_some(self) -> bytes:
        if self.is_eof():
            return b""
        data = self._source.read_some()
        if len(data) > self._remaining:
            raise ProtocolError("Body-size exceeds content-size")
        self._remaining -= len(data)
        return data


class NoBodyReader(DataReader):
    """Reader for replies that carry no body."""

    def is_eof(self) -> bool:
        return True

    def finish(self) -> None:
        pass

    def read_some(self) -> bytes:
        return b""


class IoReader(DataReader):
    """Reads raw bytes from a connection's socket.

    The connection must expose a ``socket`` attribute with ``recv``,
    ``settimeout``, ``fileno`` and ``close``. Only a weak reference to the
    connection is kept. ``read_timeout`` is in seconds; None means no timeout.
    """

    def __init__(self, connection: Any, read_timeout: Optional[float] = None) -> None:
        self._connection = weakref.ref(connection)
        self._read_timeout = read_timeout

    def is_eof(self) -> bool:
        conn = self._connection()
        if conn is None:
            return True
        return conn.socket.fileno() == -1

    def finish(self) -> None:
        pass

    def read_some(self) -> bytes:
        conn = self._connection()
        if conn is None:
            log.debug("IoReader.read_some: connection is gone")
            raise ObjectExpiredError("Connection expired")

        sock = conn.socket
        if self._read_timeout is not None:
            sock.settimeout(self._read_timeout)

        for retries in count():
            if retries:
                log.debug("IoReader.read_some: taking a nap")
                time.sleep(RETRY_DELAY)
            try:
                data = sock.recv(IO_BUFFER_SIZE)
            except BlockingIOError as ex:
                if retries < MAX_READ_RETRIES:
                    log.debug("IoReader.read_some: %s; retrying", ex)
                    continue
                raise
            except TimeoutError:
                log.debug("IoReader.read_some: timed out; closing socket")
                sock.close()
                raise
            log.debug("Read %d bytes from %r", len(data), conn)
            return data
        raise AssertionError("unreachable")