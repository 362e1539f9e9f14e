import socket

import pytest

from distkit.kvcommon import (
    GetArgs,
    GetReply,
    ListArgs,
    ListReply,
    PutArgs,
    PutReply,
    read_frame,
    write_frame,
)
from distkit.marshalling import marshal, unmarshal


@pytest.fixture
def socket_pair():
    left, right = socket.socketpair()
    right.settimeout(5)
    yield left, right
    left.close()
    right.close()


def test_frame_wire_format(socket_pair):
    left, right = socket_pair
    left.sendall(b"\x00\x00\x00\x03abc\x00\x00\x00\x00")
    assert read_frame(right) == b"abc"
    assert read_frame(right) == b""


def test_frames_round_trip_in_order(socket_pair):
    left, right = socket_pair
    payloads = [b"first", b"", b"x" * 100000]
    for payload in payloads:
        write_frame(left, payload)
    assert [read_frame(right) for _ in payloads] == payloads


def test_read_frame_at_end_of_stream_raises(socket_pair):
    left, right = socket_pair
    left.close()
    with pytest.raises(EOFError):
        read_frame(right)


def test_read_frame_of_truncated_frame_raises(socket_pair):
    left, right = socket_pair
    left.sendall(b"\x00\x00\x00\x10short")
    left.close()
    with pytest.raises(EOFError):
        read_frame(right)


@pytest.mark.parametrize(
    "message",
    [
        GetArgs("name"),
        GetReply("value", True),
        ListArgs("loc/"),
        ListReply({"loc/alice": "5", "loc/bob": "fence"}),
        PutArgs("balance/alice", "10"),
        PutReply(),
    ],
)
def test_types_marshal_round_trip(message):
    assert unmarshal(marshal(message)) == message


def test_list_reply_defaults_to_no_entries():
    assert ListReply().entries == {}


def test_marshalled_message_travels_in_a_frame(socket_pair):
    left, right = socket_pair
    write_frame(left, marshal(PutArgs("k", "v")))
    assert unmarshal(read_frame(right)) == PutArgs("k", "v")