"""Body writers: chunked encoding, fixed length, and raw socket output."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, MutableMapping, Optional

from restcore.errors import ConstraintError

log = logging.getLogger(__name__)

MAX_INPUT_BUFFER_LENGTH = 0x7FFFFFFF

Headers = MutableMapping[str, str]
TrailerFn = Callable[[], str]


class DataWriter(ABC):
    """A sink for request bytes; writers are chained, each passing on to the next."""

    @abstractmethod
    def write_direct(self, data: bytes) -> None:
        """Write bytes without any transfer encoding."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write one buffer."""

    @abstractmethod
    def write_buffers(self, buffers: Iterable[bytes]) -> None:
        """Write several buffers as one unit."""

    @abstractmethod
    def finish(self) -> None:
        """Complete the body."""

    @abstractmethod
    def set_headers(self, headers: Headers) -> None:
        """Add the headers this writer needs to the request headers."""


class ChunkedWriter(DataWriter):
    """Applies chunked transfer encoding before passing data on."""

    def __init__(self, add_header: Optional[TrailerFn], next_writer: DataWriter) -> None:
        self._add_header = add_header
        self._next = next_writer
        self._first = True

    def write_direct(self, data: bytes) -> None:
        self._next.write_direct(data)

    def write(self, data: bytes) -> None:
        self._send([data], len(data))

    def write_buffers(self, buffers: Iterable[bytes]) -> None:
        parts = list(buffers)
        self._send(parts, sum(len(part) for part in parts))

    def finish(self) -> None:
        trailer = "\r\n0"
        if self._add_header is not None:
            trailer += self._add_header()
        trailer += "\r\n\r\n"
        self._next.write(trailer.encode("latin-1"))
        self._next.finish()

    def set_headers(self, headers: Headers) -> None:
        headers["Transfer-Encoding"] = "chunked"
        self._next.set_headers(headers)

    def _send(self, parts: list, length: int) -> None:
        if length == 0:
            return
        if length > MAX_INPUT_BUFFER_LENGTH:
            raise ConstraintError("Input buffer is too large")

        prefix = "" if self._first else "\r\n"
        self._first = False
        header = f"{prefix}{length:x}\r\n".encode("ascii")
        self._next.write_buffers([header, *parts])


class PlainWriter(DataWriter):
    """Passes data through unchanged and announces its Content-Length."""

    def __init__(self, content_length: int, next_writer: DataWriter) -> None:
        self._content_length = content_length
        self._next = next_writer

    def write_direct(self, data: bytes) -> None:
        self._next.write_direct(data)

    def write(self, data: bytes) -> None:
        self._next.write(data)

    def write_buffers(self, buffers: Iterable[bytes]) -> None:
        self._next.write_buffers(buffers)

    def finish(self) -> None:
        self._next.finish()

    def set_headers(self, headers: Headers) -> None:
        headers["Content-Length"] = str(self._content_length)
        self._next.set_headers(headers)


class IoWriter(DataWriter):
    """Writes bytes to a connection's socket.

    The connection must expose a ``socket`` attribute with ``sendall``,
    ``settimeout`` and ``close``. ``write_timeout`` is in seconds; None
    means no timeout. On a timeout the socket is closed and the error raised.
    """

    def __init__(self, connection: Any, write_timeout: Optional[float] = None) -> None:
        self._connection = connection
        self._write_timeout = write_timeout

    def write_direct(self, data: bytes) -> None:
        self.write(data)

    def write(self, data: bytes) -> None:
        self._send(data)

    def write_buffers(self, buffers: Iterable[bytes]) -> None:
        self._send(b"".join(bytes(part) for part in buffers))

    def finish(self) -> None:
        pass

    def set_headers(self, headers: Headers) -> None:
        pass

    def _send(self, data: bytes) -> None:
        sock = self._connection.socket
        if self._write_timeout is not None:
            sock.settimeout(self._write_timeout)
        try:
            sock.sendall(data)
        except TimeoutError:
            log.debug("IoWriter: write timed out; closing socket")
            sock.close()
            raise
        log.debug("Wrote %d bytes to %r", len(data), self._connection)