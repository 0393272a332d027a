"""Character-level access to a body source, with HTTP line parsing."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable
from urllib.parse import quote

from restcore.errors import ConstraintError, ProtocolError

log = logging.getLogger(__name__)

AddHeader = Callable[[str, str], None]

MAX_VERSION_LEN = 16
MAX_PHRASE_LEN = 256
MAX_HEADER_NAME_LEN = 256
MAX_HEADERS = 256
MAX_HEADER_VALUE_LEN = 1024 * 4

_HTTP_1_1 = "HTTP/1.1"
_BLANKS = (" ", "\t")


@dataclass
class HttpResponse:
    """The status line of an HTTP response."""

    http_version: str = _HTTP_1_1
    status_code: int = 0
    reason_phrase: str = ""


class DataReader(ABC):
    """A source of body bytes; an empty result from read_some means no data."""

    @abstractmethod
    def is_eof(self) -> bool:
        """Return True when no more data will arrive."""

    def finish(self) -> None:
        """Complete reading; the default does nothing."""

    @abstractmethod
    def read_some(self) -> bytes:
        """Return the next available bytes, or b"" when there are none."""


class DataReaderStream(DataReader):
    """Buffers a DataReader and hands out its bytes one character at a time."""

    def __init__(self, source: DataReader) -> None:
        self._source = source
        self._buffer = b""
        self._pos = 0
        self._eof = False
        self._num_headers = 0
        self.getc_bytes = 0
        log.debug("DataReaderStream: chained to %s", type(source).__name__)

    def _fetch(self) -> None:
        if self._pos < len(self._buffer):
            return
        data = self._source.read_some()
        log.debug("DataReaderStream: fetched buffer with %d bytes", len(data))
        if not data:
            raise ProtocolError("Fetch(): EOF")
        self._buffer = bytes(data)
        self._pos = 0

    def is_eof(self) -> bool:
        return self._eof

    def finish(self) -> None:
        self._source.finish()

    def read_some(self) -> bytes:
        """Return everything left in the current buffer, fetching if it is empty."""
        self._fetch()
        data = self._buffer[self._pos:]
        self._pos = len(self._buffer)
        if self._source.is_eof():
            self.set_eof()
        return data

    def get_data(self, max_bytes: int) -> bytes:
        """Return up to max_bytes from the current buffer, fetching if it is empty."""
        self._fetch()
        data = self._buffer[self._pos:self._pos + max_bytes]
        self._pos += len(data)
        return data

    def getc(self) -> str:
        """Return the next character of the stream."""
        self._fetch()
        ch = chr(self._buffer[self._pos])
        self._pos += 1
        self.getc_bytes += 1
        return ch

    def ungetc(self) -> None:
        """Push back the character returned by the last getc()."""
        if self._pos == 0:
            raise ProtocolError("Cannot push back past the start of the buffer")
        self._pos -= 1
        self.getc_bytes -= 1

    def _collect(self, stop: str, limit: int, error: Exception) -> tuple[str, str]:
        value = ""
        ch = self.getc()
        while ch != stop:
            value += ch
            if len(value) > limit:
                raise error
            ch = self.getc()
        return value, ch

    def read_server_response(self) -> HttpResponse:
        """Parse an HTTP status line and return it."""
        self.getc_bytes = 0

        version, _ = self._collect(
            " ", MAX_VERSION_LEN,
            ProtocolError("ReadHeaders(): Too much HTTP version!"))
        if not version:
            raise ProtocolError("ReadHeaders(): No HTTP version")
        if version.casefold() != _HTTP_1_1.casefold():
            raise ProtocolError(
                "ReadHeaders(): unsupported HTTP version: "
                + quote(version, safe=""))

        code, _ = self._collect(
            " ", 3, ProtocolError("ReadHeaders(): Too much HTTP response code!"))
        if len(code) != 3:
            raise ProtocolError(
                "ReadHeaders(): Incorrect length of HTTP response code!: " + code)
        try:
            status_code = int(code)
        except ValueError:
            raise ProtocolError(
                "ReadHeaders(): Invalid HTTP response code: " + code) from None

        phrase, _ = self._collect(
            "\r", MAX_PHRASE_LEN,
            ConstraintError("ReadHeaders(): Too long HTTP response phrase!"))
        if self.getc() != "\n":
            raise ProtocolError(
                "ReadHeaders(): No CR/LF after HTTP response phrase!")

        response = HttpResponse(status_code=status_code, reason_phrase=phrase)
        log.debug("HTTP Response: %s %d %s", response.http_version,
                  response.status_code, response.reason_phrase)
        return response

    def read_header_lines(self, add_header: AddHeader) -> None:
        """Read header lines up to the empty line, passing each to add_header."""
        while True:
            name = ""
            value = ""
            ch = self.getc()
            while ch != "\r":
                if ch in _BLANKS:
                    ch = self.getc()
                    continue
                if ch == ":":
                    value = self.get_header_value()
                    ch = "\n"
                    break
                name += ch
                if len(name) > MAX_HEADER_NAME_LEN:
                    raise ConstraintError("Chunk Trailer: Header name too long!")
                ch = self.getc()

            if ch == "\r":
                ch = self.getc()
            if ch != "\n":
                raise ProtocolError("Chunk Trailer: Missing LF after parse!")

            if not name:
                if value:
                    raise ProtocolError("Chunk Trailer: Header value without name!")
                self.getc_bytes = 0
                return

            self._num_headers += 1
            if self._num_headers > MAX_HEADERS:
                raise ConstraintError("Chunk Trailer: Too many lines in header!")

            log.debug("%s: %s", name, value)
            add_header(name, value)

    def get_header_value(self) -> str:
        """Read a header value, joining folded continuation lines with a space."""
        value = ""
        while True:
            ch = self.getc()
            while ch in _BLANKS:
                ch = self.getc()
            while ch != "\r":
                value += ch
                if len(value) > MAX_HEADER_VALUE_LEN:
                    raise ConstraintError("Chunk Trailer: Header value too long!")
                ch = self.getc()
            if self.getc() != "\n":
                raise ProtocolError("Chunk Trailer: Missing LF!")
            if self.getc() not in _BLANKS:
                self.ungetc()
                return value
            value += " "

    def set_eof(self) -> None:
        log.debug("Reached EOF")
        self._eof = True