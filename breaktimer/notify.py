"""Desktop notifications sent over the D-Bus session bus."""

from __future__ import annotations

import os
import socket
import struct
from dataclasses import dataclass
from urllib.parse import unquote

APP_NAME = "wlbreaktime-daemon"
NOTIFY_SIGNATURE = "susssasa{sv}i"

_METHOD_CALL = 1
_METHOD_RETURN = 2
_ERROR = 3

_FIELD_PATH = 1
_FIELD_INTERFACE = 2
_FIELD_MEMBER = 3
_FIELD_ERROR_NAME = 4
_FIELD_REPLY_SERIAL = 5
_FIELD_DESTINATION = 6
_FIELD_SIGNATURE = 8

_FIXED_HEADER_SIZE = 16
_TIMEOUT_SECONDS = 10.0
_RECEIVE_SIZE = 4096


class DBusError(Exception):
    """Raised when the bus cannot be reached or rejects a call."""


def parse_bus_address(address: str) -> str:
    """Return the socket address of the first unix transport in a bus address."""
    for entry in address.split(";"):
        transport, _, options = entry.partition(":")
        if transport != "unix":
            continue
        values = {}
        for option in filter(None, options.split(",")):
            key, sep, value = option.partition("=")
            if not sep:
                raise DBusError(f"malformed bus address option {option!r}")
            values[key] = unquote(value)
        if "path" in values:
            return values["path"]
        if "abstract" in values:
            return "\0" + values["abstract"]
    raise DBusError(f"no usable unix transport in bus address {address!r}")


class _Writer:
    def __init__(self) -> None:
        self.data = bytearray()

    def pad(self, alignment: int) -> None:
        self.data += b"\0" * (-len(self.data) % alignment)

    def byte(self, value: int) -> None:
        self.data.append(value)

    def uint32(self, value: int) -> None:
        self.pad(4)
        self.data += struct.pack("<I", value)

    def int32(self, value: int) -> None:
        self.pad(4)
        self.data += struct.pack("<i", value)

    def string(self, value: str) -> None:
        raw = value.encode("utf-8")
        self.uint32(len(raw))
        self.data += raw + b"\0"

    def signature(self, value: str) -> None:
        raw = value.encode("ascii")
        self.byte(len(raw))
        self.data += raw + b"\0"


def _method_call(
    serial: int,
    destination: str,
    path: str,
    interface: str,
    member: str,
    signature: str = "",
    body: bytes = b"",
) -> bytes:
    if serial < 1:
        raise ValueError("message serial must be positive")
    writer = _Writer()
    writer.data += b"l" + bytes([_METHOD_CALL, 0, 1])
    writer.uint32(len(body))
    writer.uint32(serial)
    length_offset = len(writer.data)
    writer.uint32(0)
    fields_start = len(writer.data)

    fields = [
        (_FIELD_PATH, "o", path),
        (_FIELD_INTERFACE, "s", interface),
        (_FIELD_MEMBER, "s", member),
        (_FIELD_DESTINATION, "s", destination),
    ]
    if signature:
        fields.append((_FIELD_SIGNATURE, "g", signature))
    for code, kind, value in fields:
        writer.pad(8)
        writer.byte(code)
        writer.signature(kind)
        if kind == "g":
            writer.signature(value)
        else:
            writer.string(value)

    struct.pack_into("<I", writer.data, length_offset, len(writer.data) - fields_start)
    writer.pad(8)
    return bytes(writer.data) + body


def _hello_message(serial: int) -> bytes:
    return _method_call(
        serial, "org.freedesktop.DBus", "/org/freedesktop/DBus", "org.freedesktop.DBus", "Hello"
    )


def build_notify_message(serial: int, summary: str, body: str) -> bytes:
    """Encode a Notify call to the notification server."""
    payload = _Writer()
    payload.string(APP_NAME)
    payload.uint32(0)  # replaces_id
    payload.string("")  # app_icon
    payload.string(summary)
    payload.string(body)
    payload.uint32(0)  # no actions
    payload.uint32(0)  # no hints
    payload.pad(8)
    payload.int32(-1)  # server's default timeout
    return _method_call(
        serial,
        "org.freedesktop.Notifications",
        "/org/freedesktop/Notifications",
        "org.freedesktop.Notifications",
        "Notify",
        NOTIFY_SIGNATURE,
        bytes(payload.data),
    )


@dataclass(frozen=True)
class _Incoming:
    kind: int
    fields: dict[int, object]
    body: bytes
    order: str
    size: int


def _align(offset: int, alignment: int) -> int:
    return offset + (-offset % alignment)


def _read_signature(data: bytes, offset: int) -> tuple[str, int]:
    length = data[offset]
    start = offset + 1
    return data[start : start + length].decode("ascii"), start + length + 1


def _read_value(data: bytes, offset: int, kind: str, order: str) -> tuple[object, int]:
    if kind == "y":
        return data[offset], offset + 1
    if kind == "g":
        return _read_signature(data, offset)
    offset = _align(offset, 4)
    if kind == "u":
        return struct.unpack_from(order + "I", data, offset)[0], offset + 4
    if kind == "i":
        return struct.unpack_from(order + "i", data, offset)[0], offset + 4
    if kind in ("s", "o"):
        length = struct.unpack_from(order + "I", data, offset)[0]
        start = offset + 4
        return data[start : start + length].decode("utf-8"), start + length + 1
    raise DBusError(f"unsupported header field type {kind!r}")


def _parse_message(data: bytes) -> _Incoming | None:
    if len(data) < _FIXED_HEADER_SIZE:
        return None
    order = {ord("l"): "<", ord("B"): ">"}.get(data[0])
    if order is None:
        raise DBusError(f"unknown byte order marker {data[0]:#x}")
    body_length, _serial, fields_length = struct.unpack_from(order + "III", data, 4)
    fields_end = _FIXED_HEADER_SIZE + fields_length
    body_start = _align(fields_end, 8)
    total = body_start + body_length
    if len(data) < total:
        return None

    fields: dict[int, object] = {}
    offset = _FIXED_HEADER_SIZE
    while offset < fields_end:
        offset = _align(offset, 8)
        code = data[offset]
        kind, offset = _read_signature(data, offset + 1)
        fields[code], offset = _read_value(data, offset, kind, order)
    return _Incoming(data[1], fields, bytes(data[body_start:total]), order, total)


def _authenticate(sock: socket.socket) -> bytes:
    uid = str(os.getuid()).encode().hex()
    sock.sendall(b"\0AUTH EXTERNAL " + uid.encode() + b"\r\n")
    buffer = b""
    while b"\r\n" not in buffer:
        chunk = sock.recv(_RECEIVE_SIZE)
        if not chunk:
            raise DBusError("bus closed the connection during authentication")
        buffer += chunk
    line, _, rest = buffer.partition(b"\r\n")
    if not line.startswith(b"OK"):
        raise DBusError(f"authentication rejected: {line.decode(errors='replace')}")
    sock.sendall(b"BEGIN\r\n")
    return rest


def _await_reply(sock: socket.socket, buffer: bytes, serial: int) -> _Incoming:
    data = bytearray(buffer)
    while True:
        while (message := _parse_message(bytes(data))) is not None:
            del data[: message.size]
            if message.fields.get(_FIELD_REPLY_SERIAL) != serial:
                continue
            if message.kind == _METHOD_RETURN:
                return message
            if message.kind == _ERROR:
                name = message.fields.get(_FIELD_ERROR_NAME, "unknown error")
                detail = ""
                signature = message.fields.get(_FIELD_SIGNATURE, "")
                if isinstance(signature, str) and signature.startswith("s"):
                    text, _ = _read_value(message.body, 0, "s", message.order)
                    detail = f": {text}"
                raise DBusError(f"{name}{detail}")
        chunk = sock.recv(_RECEIVE_SIZE)
        if not chunk:
            raise DBusError("bus closed the connection before replying")
        data += chunk


def send_notification(summary: str, body: str, address: str | None = None) -> int:
    """Show a desktop notification and return the id the server gave it."""
    if address is None:
        address = os.environ.get("DBUS_SESSION_BUS_ADDRESS")
        if not address:
            raise DBusError("DBUS_SESSION_BUS_ADDRESS is not set")
    target = parse_bus_address(address)

    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(_TIMEOUT_SECONDS)
            sock.connect(target)
            leftover = _authenticate(sock)
            sock.sendall(_hello_message(1))
            notify_serial = 2
            sock.sendall(build_notify_message(notify_serial, summary, body))
            reply = _await_reply(sock, leftover, notify_serial)
    except TimeoutError as exc:
        raise DBusError("timed out waiting for the bus") from exc
    except OSError as exc:
        raise DBusError(f"unable to talk to the bus: {exc}") from exc

    if reply.fields.get(_FIELD_SIGNATURE) == "u":
        notification_id, _ = _read_value(reply.body, 0, "u", reply.order)
        return int(notification_id)  # type: ignore[arg-type]
    return 0