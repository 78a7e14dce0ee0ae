import pytest

from zinx.connmanager import ConnectionNotFoundError, ConnManager


class FakeConn:
    def __init__(self, conn_id):
        self.conn_id = conn_id
        self.stopped = False

    def stop(self):
        self.stopped = True


def test_add_and_get():
    mgr = ConnManager()
    conn = FakeConn(7)
    mgr.add(conn)
    assert len(mgr) == 1
    assert mgr.get(7) is conn


def test_get_missing_raises():
    mgr = ConnManager()
    with pytest.raises(ConnectionNotFoundError):
        mgr.get(42)


def test_remove():
    mgr = ConnManager()
    first, second = FakeConn(1), FakeConn(2)
    mgr.add(first)
    mgr.add(second)
    mgr.remove(first)
    assert len(mgr) == 1
    assert mgr.get(2) is second
    with pytest.raises(ConnectionNotFoundError):
        mgr.get(1)


def test_remove_unknown_is_harmless():
    mgr = ConnManager()
    mgr.add(FakeConn(1))
    mgr.remove(FakeConn(99))
    assert len(mgr) == 1


def test_add_same_id_replaces():
    mgr = ConnManager()
    old, new = FakeConn(3), FakeConn(3)
    mgr.add(old)
    mgr.add(new)
    assert len(mgr) == 1
    assert mgr.get(3) is new


def test_clear_conn_stops_all():
    mgr = ConnManager()
    conns = [FakeConn(i) for i in range(4)]
    for conn in conns:
        mgr.add(conn)
    mgr.clear_conn()
    assert len(mgr) == 0
    assert all(conn.stopped for conn in conns)


def test_clear_one_conn():
    mgr = ConnManager()
    keep, drop = FakeConn(1), FakeConn(2)
    mgr.add(keep)
    mgr.add(drop)
    mgr.clear_one_conn(2)
    assert drop.stopped
    assert not keep.stopped
    assert 2 not in mgr
    assert mgr.get(1) is keep


def test_clear_one_conn_unknown_leaves_others():
    mgr = ConnManager()
    keep = FakeConn(1)
    mgr.add(keep)
    mgr.clear_one_conn(5)
    assert len(mgr) == 1
    assert not keep.stopped