# restcore

Building blocks for an HTTP/1.1 REST client, in plain Python with no
third-party dependencies.

## What is inside

- **`restcore.stream`**: `DataReaderStream` wraps any `DataReader` and hands
  out its bytes one character at a time (`getc`, `ungetc`) or in pieces
  (`read_some`, `get_data`). It parses an HTTP/1.1 status line
  (`read_server_response`, which returns an `HttpResponse`) and header blocks
  (`read_header_lines`), including folded header values.
- **`restcore.readers`**: readers for response bodies:
  - `ChunkedReader` decodes `Transfer-Encoding: chunked`, trailers included.
  - `PlainReader` reads a body of known `Content-Length`.
  - `NoBodyReader` is for responses that carry no body.
  - `IoReader` reads from a connection's `socket`, retrying briefly on
    `BlockingIOError` and closing the socket on a timeout.
  - `to_printable` renders bytes for log output.
- **`restcore.writers`**: writers for request bodies, chained together:
  - `ChunkedWriter` applies chunked encoding and sets `Transfer-Encoding`.
  - `PlainWriter` passes data through and sets `Content-Length`.
  - `IoWriter` sends to a connection's `socket`.
- **`restcore.connection`**: `ConnectionPool` hands out `PooledConnection`
  objects, keeps idle connections per endpoint and enforces the limits in
  `PoolProperties` (per endpoint and in total). When the total limit is
  reached it drops the least recently used idle connection. A background
  timer, or a call to `cleanup()`, expires idle connections after their time
  to live. A `PooledConnection` goes back to the pool on `release()` or when
  its `with` block ends.
- **`restcore.jsonprops`**, **`restcore.jsondecode`**, **`restcore.jsonencode`**:
  JSON mapping for dataclasses, `list`, `deque`, `dict[str, T]` and
  `Optional[T]`:
  - `from_json` / `JsonDeserializer` decode; `to_json`, `dump_json`,
    `JsonSerializer` and `JsonInserter` encode;
  - empty fields can be skipped, names excluded or renamed
    (`JsonFieldMapping`);
  - strings are converted to numbers and booleans where the target asks
    for them (`assign_value`);
  - a memory budget guards decoding;
  - unknown properties are skipped by default, or raise
    `UnknownPropertyError` when asked.

Errors are subclasses of `restcore.errors.RestcError`: `ProtocolError`,
`ParseError`, `ConstraintError`, `UnknownPropertyError` and
`ObjectExpiredError`.

## JSON example

```python
from dataclasses import dataclass, field

from restcore.jsondecode import from_json
from restcore.jsonencode import to_json


@dataclass
class Person:
    id: int = 0
    name: str = ""
    balance: float = 0.0


@dataclass
class Group:
    name: str = ""
    gid: int = 0
    leader: Person = field(default_factory=Person)
    members: list[Person] = field(default_factory=list)


group = from_json(Group, '{"name": "qzar", "gid": 1, '
                         '"leader": {"id": 100, "name": "Dolly Doe", "balance": 123.45}}')
print(group.leader.name)   # Dolly Doe
print(to_json(Person(100, "John Doe", 123.45)))
# {"id":100,"name":"John Doe","balance":123.45}
```

`SerializeProperties` controls the mapping: `ignore_empty_fields`,
`ignore_unknown_properties`, `max_memory_consumption`, `excluded_names` and
`name_mapping`.

## Chunked body example

```python
from restcore.readers import ChunkedReader
from restcore.stream import DataReaderStream

trailers = {}
reader = ChunkedReader(trailers.__setitem__, DataReaderStream(source_reader))
body = b""
while chunk := reader.read_some():
    body += chunk
reader.finish()
```

## What it does not do

This package holds parts, not a finished client. It does not build or send
requests, resolve host names, follow redirects or handle authentication and
cookies, and it has no command-line tool. The pool's default socket factory
creates plain TCP sockets only; for HTTPS, pass your own `socket_factory`.

## Tests

```
pip install -e .[test]
pytest
```