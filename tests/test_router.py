from zinx.message import new_msg_package
from zinx.router import BaseRouter, Request


class _Conn:
    def __init__(self, conn_id):
        self.conn_id = conn_id


def test_request_exposes_message_fields():
    conn = _Conn(7)
    request = Request(conn, new_msg_package(4, b"payload"))
    assert request.connection is conn
    assert request.msg_id == 4
    assert request.data == b"payload"


def test_request_reflects_message_changes():
    msg = new_msg_package(1, b"a")
    request = Request(_Conn(1), msg)
    msg.data = b"b"
    assert request.data == b"b"


def test_subclass_overrides_only_handle():
    calls = []

    class Echo(BaseRouter):
        def handle(self, request):
            calls.append(("handle", request.msg_id))

    router = Echo()
    request = Request(_Conn(1), new_msg_package(9, b"x"))
    pre = router.pre_handle(request)
    router.handle(request)
    post = router.post_handle(request)
    assert (pre, post) == (None, None)
    assert request.msg_id == 9
    assert calls == [("handle", 9)]


def test_all_hooks_run_in_order_when_overridden():
    calls = []

    class Full(BaseRouter):
        def pre_handle(self, request):
            calls.append(("pre", request.data))

        def handle(self, request):
            calls.append(("handle", request.data))

        def post_handle(self, request):
            calls.append(("post", request.data))

    router = Full()
    request = Request(_Conn(2), new_msg_package(0, b"d"))
    for hook in (router.pre_handle, router.handle, router.post_handle):
        hook(request)
    assert request.data == b"d"
    assert calls == [("pre", b"d"), ("handle", b"d"), ("post", b"d")]


def test_base_router_hooks_return_none():
    router = BaseRouter()
    request = Request(_Conn(3), new_msg_package(0, b""))
    results = [router.pre_handle(request), router.handle(request), router.post_handle(request)]
    assert results == [None, None, None]