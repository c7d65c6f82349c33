import os
import socket

import pytest

from breaktimer.wire import (
    Message,
    WaylandConnection,
    decode_message,
    encode_message,
    pack_int,
    pack_string,
    pack_uint,
    read_array,
    read_int,
    read_string,
    read_uint,
)


@pytest.fixture
def pair():
    a, b = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
    a.settimeout(5)
    b.settimeout(5)
    yield a, b
    a.close()
    b.close()


def test_uint_round_trip():
    assert read_uint(pack_uint(0xFFFFFFFF), 0) == (0xFFFFFFFF, 4)


def test_int_round_trip_negative():
    assert read_int(pack_int(-12345), 0) == (-12345, 4)


@pytest.mark.parametrize("value", [-1, 0x100000000])
def test_uint_out_of_range(value):
    with pytest.raises(ValueError):
        pack_uint(value)


def test_int_out_of_range():
    with pytest.raises(ValueError):
        pack_int(0x80000000)


def test_read_uint_truncated():
    with pytest.raises(ValueError):
        read_uint(b"\x01\x02", 0)


@pytest.mark.parametrize("text", ["", "a", "wl_compositor", "Breaktimer ID", "ünïcode"])
def test_string_round_trip_and_padding(text):
    packed = pack_string(text)
    assert len(packed) % 4 == 0
    assert read_string(packed, 0) == (text, len(packed))


def test_null_string_round_trip():
    packed = pack_string(None)
    assert read_string(packed, 0) == (None, 4)


def test_unterminated_string_rejected():
    with pytest.raises(ValueError):
        read_string(pack_uint(4) + b"abcd", 0)


def test_read_array():
    data = pack_uint(3) + b"abc\0" + pack_uint(7)
    values, offset = read_array(data, 0)
    assert values == b"abc"
    assert read_uint(data, offset) == (7, len(data))


def test_message_round_trip():
    payload = pack_uint(5) + pack_string("xdg_wm_base") + pack_int(-2)
    encoded = encode_message(9, 3, payload)
    message = decode_message(encoded)
    assert message == Message(9, 3, payload)
    assert message.size == len(encoded)
    assert message.encode() == encoded


def test_decode_incomplete_returns_none():
    encoded = encode_message(2, 0, pack_uint(1))
    assert decode_message(encoded[:-1]) is None
    assert decode_message(encoded[:3]) is None


def test_decode_rejects_bad_size():
    header = encode_message(1, 0)
    corrupt = header[:4] + pack_uint((6 << 16) | 0)
    with pytest.raises(ValueError):
        decode_message(corrupt)


def test_encode_rejects_unaligned_payload():
    with pytest.raises(ValueError):
        encode_message(1, 0, b"abc")


def test_allocate_id_is_sequential(pair):
    connection = WaylandConnection(pair[0])
    assert [connection.allocate_id() for _ in range(3)] == [2, 3, 4]


def test_send_is_received_by_peer(pair):
    a, b = pair
    WaylandConnection(a).send(4, 2, pack_uint(77))
    message = decode_message(b.recv(100))
    assert message == Message(4, 2, pack_uint(77))


def test_send_passes_descriptor(pair, tmp_path):
    a, b = pair
    target = tmp_path / "pool"
    target.write_bytes(b"data")
    fd = os.open(target, os.O_RDONLY)
    try:
        WaylandConnection(a).send(4, 0, pack_uint(5), fds=[fd])
    finally:
        os.close(fd)
    data, fds, _, _ = socket.recv_fds(b, 100, 4)
    try:
        assert len(fds) == 1
        assert os.read(fds[0], 4) == b"data"
    finally:
        for received in fds:
            os.close(received)
    assert decode_message(data) == Message(4, 0, pack_uint(5))


def test_receive_buffers_partial_messages(pair):
    a, b = pair
    connection = WaylandConnection(a)
    first = encode_message(2, 0, pack_uint(1) + pack_string("wl_shm"))
    second = encode_message(3, 1, pack_int(-4))
    stream = first + second
    b.sendall(stream[:10])
    assert connection.receive() == []
    b.sendall(stream[10:])
    assert connection.receive() == [decode_message(first), decode_message(second)]


def test_receive_on_closed_peer_raises(pair):
    a, b = pair
    b.close()
    with pytest.raises(ConnectionError):
        WaylandConnection(a).receive()


def test_from_env_connects_to_display(tmp_path, monkeypatch):
    path = str(tmp_path / "wl")
    server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    server.bind(path)
    server.listen(1)
    monkeypatch.delenv("WAYLAND_SOCKET", raising=False)
    monkeypatch.setenv("WAYLAND_DISPLAY", path)
    try:
        with WaylandConnection.from_env() as connection:
            peer, _ = server.accept()
            with peer:
                connection.send(1, 1, pack_uint(2))
                assert decode_message(peer.recv(100)) == Message(1, 1, pack_uint(2))
    finally:
        server.close()


def test_from_env_missing_display(tmp_path, monkeypatch):
    monkeypatch.delenv("WAYLAND_SOCKET", raising=False)
    monkeypatch.setenv("XDG_RUNTIME_DIR", str(tmp_path))
    monkeypatch.setenv("WAYLAND_DISPLAY", "absent")
    with pytest.raises(ConnectionError):
        WaylandConnection.from_env()