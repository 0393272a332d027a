import pytest

from restcore.connection import (
    Connection,
    ConnectionPool,
    ConnectionType,
    PoolProperties,
)
from restcore.errors import ConstraintError, ObjectExpiredError

EP1 = ("localhost", 3001)
EP2 = ("localhost", 3002)
EP3 = ("localhost", 3003)


class FakeSocket:
    def __init__(self):
        self.closed = False

    def fileno(self):
        return -1 if self.closed else 3

    def close(self):
        self.closed = True


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make_pool(clock=None, **props):
    props.setdefault("cache_cleanup_interval_seconds", 0)
    return ConnectionPool(PoolProperties(**props), lambda ctype: FakeSocket(), clock)


@pytest.fixture
def pool():
    p = make_pool()
    yield p
    p.close()


def test_released_connection_is_reused(pool):
    conn = pool.get_connection(EP1, ConnectionType.HTTP)
    first_id = conn.id
    conn.release()
    assert pool.idle_connections() == 1
    again = pool.get_connection(EP1, ConnectionType.HTTP)
    assert again.id == first_id
    assert pool.idle_connections() == 0


def test_new_connection_please_skips_cache(pool):
    conn = pool.get_connection(EP1)
    first_id = conn.id
    conn.release()
    fresh = pool.get_connection(EP1, ConnectionType.HTTP, True)
    assert fresh.id != first_id
    assert pool.idle_connections() == 1


def test_connection_type_is_part_of_the_key(pool):
    conn = pool.get_connection(EP1, ConnectionType.HTTP)
    http_id = conn.id
    conn.release()
    other = pool.get_connection(EP1, ConnectionType.HTTPS)
    assert other.id != http_id
    assert pool.idle_connections() == 1


def test_per_endpoint_limit():
    p = make_pool(cache_max_connections_per_endpoint=2)
    try:
        p.get_connection(EP1)
        p.get_connection(EP1)
        with pytest.raises(ConstraintError):
            p.get_connection(EP1)
        assert p.get_connection(EP2).socket.closed is False
    finally:
        p.close()


def test_new_connection_please_ignores_limits():
    p = make_pool(cache_max_connections_per_endpoint=1)
    try:
        a = p.get_connection(EP1)
        b = p.get_connection(EP1, ConnectionType.HTTP, True)
        assert a.id != b.id
    finally:
        p.close()


def test_total_limit_purges_oldest_idle():
    clock = FakeClock()
    p = make_pool(clock, cache_max_connections=2)
    try:
        idle = p.get_connection(EP1)
        idle_socket = idle.socket
        idle.release()
        p.get_connection(EP2)
        clock.now = 1
        p.get_connection(EP3)
        assert p.idle_connections() == 0
        assert idle_socket.closed
    finally:
        p.close()


def test_total_limit_without_idle_raises():
    p = make_pool(cache_max_connections=2)
    try:
        p.get_connection(EP1)
        p.get_connection(EP2)
        with pytest.raises(ConstraintError):
            p.get_connection(EP3)
    finally:
        p.close()


def test_closed_socket_is_discarded_on_release(pool):
    conn = pool.get_connection(EP1)
    conn.socket.close()
    conn.release()
    assert pool.idle_connections() == 0


def test_release_is_idempotent(pool):
    conn = pool.get_connection(EP1)
    conn.release()
    conn.release()
    assert pool.idle_connections() == 1


def test_context_manager_releases(pool):
    with pool.get_connection(EP1) as conn:
        conn_id = conn.id
        assert pool.idle_connections() == 0
    assert pool.idle_connections() == 1
    assert pool.get_connection(EP1).id == conn_id


def test_close_drops_idle_and_rejects_requests():
    p = make_pool()
    conn = p.get_connection(EP1)
    sock = conn.socket
    conn.release()
    p.close()
    assert p.idle_connections() == 0
    assert sock.closed
    with pytest.raises(ObjectExpiredError):
        p.get_connection(EP1)


def test_release_after_close_discards():
    p = make_pool()
    conn = p.get_connection(EP1)
    p.close()
    conn.release()
    assert p.idle_connections() == 0


def test_cleanup_expires_after_ttl():
    clock = FakeClock()
    p = make_pool(clock, cache_ttl_seconds=60)
    try:
        conn = p.get_connection(EP1)
        sock = conn.socket
        conn.release()
        clock.now = 30
        assert p.cleanup() == 0
        assert p.idle_connections() == 1
        clock.now = 61
        assert p.cleanup() == 1
        assert p.idle_connections() == 0
        assert sock.closed
    finally:
        p.close()


def test_cleanup_after_close_does_nothing():
    p = make_pool()
    p.close()
    assert p.cleanup() == 0


def test_default_factory_has_no_tls():
    p = ConnectionPool(PoolProperties(cache_cleanup_interval_seconds=0))
    try:
        with pytest.raises(NotImplementedError):
            p.get_connection(EP1, ConnectionType.HTTPS)
    finally:
        p.close()


def test_connections_have_unique_ids():
    a = Connection(FakeSocket())
    b = Connection(FakeSocket())
    assert a.id != b.id
    assert str(a.id) in repr(a)
    assert repr(a).startswith("{Connection ")