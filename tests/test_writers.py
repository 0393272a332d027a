import pytest

from restcore.errors import ConstraintError
from restcore.readers import ChunkedReader
from restcore.stream import DataReader, DataReaderStream
from restcore.writers import (
    MAX_INPUT_BUFFER_LENGTH,
    ChunkedWriter,
    DataWriter,
    IoWriter,
    PlainWriter,
)


class RecordingWriter(DataWriter):
    def __init__(self):
        self.calls = []
        self.headers_seen = None
        self.finished = False

    def write_direct(self, data):
        self.calls.append(("direct", bytes(data)))

    def write(self, data):
        self.calls.append(("write", bytes(data)))

    def write_buffers(self, buffers):
        self.calls.append(("buffers", [bytes(b) for b in buffers]))

    def finish(self):
        self.finished = True

    def set_headers(self, headers):
        self.headers_seen = dict(headers)

    def wire(self):
        out = b""
        for kind, payload in self.calls:
            out += b"".join(payload) if kind == "buffers" else payload
        return out


class OneShotSource(DataReader):
    def __init__(self, data):
        self._data = data

    def is_eof(self):
        return not self._data

    def read_some(self):
        data, self._data = self._data, b""
        return data


class Huge:
    def __len__(self):
        return MAX_INPUT_BUFFER_LENGTH + 1


class FakeSocket:
    def __init__(self, fail=None):
        self.sent = []
        self.timeouts = []
        self.closed = False
        self.fail = fail

    def settimeout(self, value):
        self.timeouts.append(value)

    def sendall(self, data):
        if self.fail is not None:
            raise self.fail
        self.sent.append(bytes(data))

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, sock):
        self.socket = sock


def test_plain_writer_sets_content_length_and_forwards():
    sink = RecordingWriter()
    writer = PlainWriter(10, sink)
    headers = {"Accept": "*/*"}
    writer.set_headers(headers)
    assert headers["Content-Length"] == "10"
    assert sink.headers_seen == headers


def test_plain_writer_passes_data_through():
    sink = RecordingWriter()
    writer = PlainWriter(5, sink)
    writer.write(b"hello")
    writer.write_buffers([b"a", b"b"])
    writer.write_direct(b"raw")
    writer.finish()
    assert sink.calls == [
        ("write", b"hello"),
        ("buffers", [b"a", b"b"]),
        ("direct", b"raw"),
    ]
    assert sink.finished


def test_chunked_writer_first_chunk_has_no_leading_crlf():
    sink = RecordingWriter()
    writer = ChunkedWriter(None, sink)
    writer.write(b"hello")
    assert sink.calls == [("buffers", [b"5\r\n", b"hello"])]


def test_chunked_writer_later_chunks_start_with_crlf_and_hex_length():
    sink = RecordingWriter()
    writer = ChunkedWriter(None, sink)
    writer.write(b"x")
    writer.write(b"0123456789abcdef")
    assert sink.calls[1] == ("buffers", [b"\r\n10\r\n", b"0123456789abcdef"])


def test_chunked_writer_write_buffers_uses_total_length():
    sink = RecordingWriter()
    writer = ChunkedWriter(None, sink)
    writer.write_buffers([b"abc", b"de"])
    assert sink.calls == [("buffers", [b"5\r\n", b"abc", b"de"])]


def test_chunked_writer_ignores_empty_write():
    sink = RecordingWriter()
    writer = ChunkedWriter(None, sink)
    writer.write(b"")
    writer.write_buffers([])
    assert sink.calls == []


def test_chunked_writer_finish_without_trailer():
    sink = RecordingWriter()
    writer = ChunkedWriter(None, sink)
    writer.finish()
    assert sink.calls == [("write", b"\r\n0\r\n\r\n")]
    assert sink.finished


def test_chunked_writer_finish_with_trailer():
    sink = RecordingWriter()
    writer = ChunkedWriter(lambda: "\r\nX-Trailer: yes", sink)
    writer.finish()
    assert sink.calls == [("write", b"\r\n0\r\nX-Trailer: yes\r\n\r\n")]


def test_chunked_writer_sets_transfer_encoding():
    sink = RecordingWriter()
    writer = ChunkedWriter(None, sink)
    headers = {}
    writer.set_headers(headers)
    assert headers == {"Transfer-Encoding": "chunked"}
    assert sink.headers_seen == headers


def test_chunked_writer_direct_write_is_unencoded():
    sink = RecordingWriter()
    writer = ChunkedWriter(None, sink)
    writer.write_direct(b"raw")
    assert sink.calls == [("direct", b"raw")]


def test_chunked_writer_rejects_too_large_input():
    sink = RecordingWriter()
    writer = ChunkedWriter(None, sink)
    with pytest.raises(ConstraintError):
        writer.write(Huge())
    assert sink.calls == []


def test_chunked_round_trip_through_chunked_reader():
    sink = RecordingWriter()
    writer = ChunkedWriter(lambda: "\r\nX-Trailer: yes", sink)
    writer.write(b"hello")
    writer.write_buffers([b" wor", b"ld"])
    writer.finish()

    trailers = {}
    reader = ChunkedReader(trailers.__setitem__,
                           DataReaderStream(OneShotSource(sink.wire())))
    body = b""
    while not reader.is_eof():
        body += reader.read_some()
    assert body == b"hello world"
    assert trailers == {"X-Trailer": "yes"}


def test_io_writer_sends_data_with_timeout():
    sock = FakeSocket()
    writer = IoWriter(FakeConnection(sock), write_timeout=2.5)
    writer.write(b"abc")
    writer.write_direct(b"def")
    assert sock.sent == [b"abc", b"def"]
    assert sock.timeouts == [2.5, 2.5]


def test_io_writer_joins_buffers():
    sock = FakeSocket()
    writer = IoWriter(FakeConnection(sock))
    writer.write_buffers([b"ab", b"cd"])
    assert sock.sent == [b"abcd"]
    assert sock.timeouts == []


def test_io_writer_closes_socket_on_timeout():
    sock = FakeSocket(fail=TimeoutError("slow"))
    writer = IoWriter(FakeConnection(sock), write_timeout=1)
    with pytest.raises(TimeoutError):
        writer.write(b"abc")
    assert sock.closed


def test_io_writer_leaves_headers_alone():
    writer = IoWriter(FakeConnection(FakeSocket()))
    headers = {"Accept": "*/*"}
    writer.set_headers(headers)
    writer.finish()
    assert headers == {"Accept": "*/*"}