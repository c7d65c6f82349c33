"""Encoding and transport of messages in the Wayland wire format."""

from __future__ import annotations

import os
import socket
import struct
from dataclasses import dataclass

_UINT = struct.Struct("=I")
_INT = struct.Struct("=i")
_HEADER = struct.Struct("=II")

HEADER_SIZE = _HEADER.size
MAX_MESSAGE_SIZE = 0xFFFF
DISPLAY_ID = 1


def _padding(length):
    return (-length) % 4


def pack_uint(value):
    """Encode an unsigned 32-bit argument."""
    if not 0 <= value <= 0xFFFFFFFF:
        raise ValueError(f"{value} does not fit in an unsigned 32-bit integer")
    return _UINT.pack(value)


def pack_int(value):
    """Encode a signed 32-bit argument."""
    if not -0x80000000 <= value <= 0x7FFFFFFF:
        raise ValueError(f"{value} does not fit in a signed 32-bit integer")
    return _INT.pack(value)


def pack_string(value):
    """Encode a string argument; None encodes the null string."""
    if value is None:
        return pack_uint(0)
    raw = value.encode("utf-8") + b"\0"
    return pack_uint(len(raw)) + raw + b"\0" * _padding(len(raw))


def _read(fmt, data, offset):
    if offset < 0 or offset + fmt.size > len(data):
        raise ValueError("message is truncated")
    return fmt.unpack_from(data, offset)[0], offset + fmt.size


def read_uint(data, offset):
    """Decode an unsigned 32-bit argument; return it and the next offset."""
    return _read(_UINT, data, offset)


def read_int(data, offset):
    """Decode a signed 32-bit argument; return it and the next offset."""
    return _read(_INT, data, offset)


def read_array(data, offset):
    """Decode an array argument; return its bytes and the next offset."""
    length, offset = read_uint(data, offset)
    end = offset + length
    if end > len(data):
        raise ValueError("argument runs past the end of the message")
    return bytes(data[offset:end]), end + _padding(length)


def read_string(data, offset):
    """Decode a string argument; return it and the next offset."""
    raw, offset = read_array(data, offset)
    if not raw:
        return None, offset
    if raw[-1] != 0:
        raise ValueError("string is not terminated")
    return raw[:-1].decode("utf-8"), offset


@dataclass(frozen=True)
class Message:
    """One request or event: the object it concerns, its opcode and its arguments."""

    object_id: int
    opcode: int
    payload: bytes = b""

    @property
    def size(self):
        return HEADER_SIZE + len(self.payload)

    def encode(self):
        return encode_message(self.object_id, self.opcode, self.payload)


def encode_message(object_id, opcode, payload=b""):
    """Frame a payload with the header naming the object, opcode and size."""
    size = HEADER_SIZE + len(payload)
    if len(payload) % 4:
        raise ValueError("payload length must be a multiple of four")
    if size > MAX_MESSAGE_SIZE:
        raise ValueError(f"message of {size} bytes is too large")
    if not 0 <= opcode <= 0xFFFF:
        raise ValueError(f"opcode {opcode} is out of range")
    return _HEADER.pack(object_id, (size << 16) | opcode) + payload


def decode_message(data):
    """Decode the message at the start of data, or return None if it is incomplete."""
    if len(data) < HEADER_SIZE:
        return None
    object_id, word = _HEADER.unpack_from(data, 0)
    size, opcode = word >> 16, word & 0xFFFF
    if size < HEADER_SIZE or size % 4:
        raise ValueError(f"invalid message size {size}")
    if len(data) < size:
        return None
    return Message(object_id, opcode, bytes(data[HEADER_SIZE:size]))


class WaylandConnection:
    """A stream connection to a compositor that sends and receives whole messages."""

    def __init__(self, sock):
        self._sock = sock
        self._buffer = bytearray()
        self._next_id = DISPLAY_ID + 1

    @classmethod
    def from_env(cls):
        """Connect to the compositor named by WAYLAND_DISPLAY."""
        display = os.environ.get("WAYLAND_DISPLAY", "wayland-0")
        if not os.path.isabs(display):
            runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
            if runtime_dir is None:
                raise ConnectionError("XDG_RUNTIME_DIR is not set")
            display = os.path.join(runtime_dir, display)
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(display)
        except OSError as exc:
            sock.close()
            raise ConnectionError(f"unable to connect to compositor at {display}: {exc}") from exc
        return cls(sock)

    def allocate_id(self):
        """Return a fresh object id for a new client-side object."""
        object_id = self._next_id
        self._next_id += 1
        return object_id

    def send(self, object_id, opcode, payload=b"", fds=()):
        """Send one request, passing any file descriptors alongside it."""
        data = encode_message(object_id, opcode, payload)
        sent = socket.send_fds(self._sock, [data], list(fds)) if fds else 0
        self._sock.sendall(data[sent:])

    def receive(self):
        """Block for incoming data and return every message it completes."""
        data, fds, _, _ = socket.recv_fds(self._sock, 4096, 28)
        for fd in fds:
            os.close(fd)
        if not data:
            raise ConnectionError("the compositor closed the connection")
        self._buffer += data
        messages = []
        while (message := decode_message(self._buffer)) is not None:
            del self._buffer[: message.size]
            messages.append(message)
        return messages

    def close(self):
        self._sock.close()