from zinx.message import Message, new_msg_package


def test_new_msg_package_sets_length_from_data():
    msg = new_msg_package(3, b"abc")
    assert msg.msg_id == 3
    assert msg.data == b"abc"
    assert msg.data_len == len(b"abc")


def test_new_msg_package_empty_payload():
    msg = new_msg_package(9, b"")
    assert msg.data_len == 0
    assert msg.data == b""


def test_new_msg_package_accepts_bytearray():
    msg = new_msg_package(1, bytearray(b"xy"))
    assert msg.data == b"xy"
    assert msg.data_len == 2


def test_message_defaults_are_empty():
    msg = Message()
    assert (msg.msg_id, msg.data, msg.data_len) == (0, b"", 0)


def test_replacing_data_keeps_announced_length():
    msg = new_msg_package(1, b"hello")
    msg.data = b"hi"
    assert msg.data_len == len(b"hello")


def test_messages_compare_by_value():
    assert new_msg_package(2, b"zz") == Message(msg_id=2, data=b"zz", data_len=2)