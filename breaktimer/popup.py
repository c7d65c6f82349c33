"""A fullscreen Wayland window shown for the length of a break."""

from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass, field

from .timer import wait_until_work
from .wire import DISPLAY_ID, pack_int, pack_string, pack_uint, read_array, read_int, read_string, read_uint

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SurfaceSize:
    width: int
    height: int


class ShmFormat(enum.IntEnum):
    """Pixel formats of shared-memory buffers."""

    ARGB8888 = 0
    XRGB8888 = 1
    XBGR8888 = 0x34324258

    @property
    def label(self):
        return self.name.capitalize()


@dataclass
class State:
    """Globals bound from the compositor and what it has told us."""

    wl_shm: int | None = None
    surface_size: SurfaceSize | None = None
    accepted_formats: list = field(default_factory=list)
    compositor: int | None = None
    base: int | None = None


def check_for_globals(state):
    """Raise RuntimeError naming the first required global that was not bound."""
    for name, value in (("compositor", state.compositor), ("base", state.base), ("wl_shm", state.wl_shm)):
        if value is None:
            raise RuntimeError(f"no {name}")


def choose_format(formats):
    """Prefer XRGB8888, then ARGB8888, falling back to XBGR8888."""
    for candidate in (ShmFormat.XRGB8888, ShmFormat.ARGB8888):
        if candidate in formats:
            return candidate
    log.error("Neither Xrgb8888 nor Argb8888 are supported")
    return ShmFormat.XBGR8888


def pool_filename(runtime_dir, surface_size, format):
    """Return the path of the file backing the buffer pool for this size and format."""
    return f"{runtime_dir}/wlbreaktime-pool-{surface_size.width}-{surface_size.height}{format.label}"


def draw_checker_board(filename, surface_size, format):
    """Write the pool file unless it already exists; return True if it was written."""
    try:
        handle = open(filename, "xb")
    except FileExistsError:
        return False
    pixels = max(surface_size.width * surface_size.height, 0)
    with handle:
        handle.write((b"FF666666FFEEEEEE" * ((pixels + 1) // 2))[: 8 * pixels])
        handle.write(b"00000000" * pixels)
    return True


class WaylandClient:
    """Tracks the objects of one connection and dispatches the events sent to them."""

    def __init__(self, connection):
        self.connection = connection
        self.state = State()
        self._objects = {DISPLAY_ID: "wl_display"}
        self.registry = self._new_object("wl_registry")
        connection.send(DISPLAY_ID, 1, pack_uint(self.registry))

    def _new_object(self, interface):
        object_id = self.connection.allocate_id()
        self._objects[object_id] = interface
        return object_id

    def _bind(self, name, interface, version):
        object_id = self._new_object(interface)
        payload = pack_uint(name) + pack_string(interface) + pack_uint(version) + pack_uint(object_id)
        self.connection.send(self.registry, 0, payload)
        log.info("Bound %s", interface)
        return object_id

    def handle(self, message):
        """React to one event from the compositor."""
        interface = self._objects.get(message.object_id)
        handler = getattr(self, f"_on_{interface}", None)
        if handler is None:
            log.info("%s event %d on object %d", interface, message.opcode, message.object_id)
            return
        handler(message.object_id, message.opcode, message.payload)

    def blocking_dispatch(self):
        """Wait for events and handle every one that arrives."""
        messages = []
        while not messages:
            messages = self.connection.receive()
        for message in messages:
            self.handle(message)

    def _on_wl_display(self, _object_id, opcode, payload):
        if opcode == 0:
            failed_id, offset = read_uint(payload, 0)
            code, offset = read_uint(payload, offset)
            text, _ = read_string(payload, offset)
            raise ConnectionError(f"compositor error {code} on object {failed_id}: {text}")
        self._objects.pop(read_uint(payload, 0)[0], None)

    def _on_wl_registry(self, _object_id, opcode, payload):
        if opcode != 0:
            return
        name, offset = read_uint(payload, 0)
        interface, offset = read_string(payload, offset)
        version, _ = read_uint(payload, offset)
        if interface == "wl_compositor":
            self.state.compositor = self._bind(name, interface, 1)
        elif interface == "wl_shm":
            self.state.wl_shm = self._bind(name, interface, min(version, 2))
        elif interface == "xdg_wm_base":
            self.state.base = self._bind(name, interface, 1)

    def _on_wl_shm(self, _object_id, opcode, payload):
        if opcode != 0:
            log.error("Unconfigured wlShm event %d", opcode)
            return
        value, _ = read_uint(payload, 0)
        log.info("This compositor supports the %#x format", value)
        self.state.accepted_formats.append(value)

    def _on_xdg_wm_base(self, object_id, opcode, payload):
        if opcode != 0:
            log.error("Unexpected XdgWmBase event %d", opcode)
            return
        serial, _ = read_uint(payload, 0)
        self.connection.send(object_id, 3, pack_uint(serial))

    def _on_xdg_surface(self, object_id, opcode, payload):
        if opcode != 0:
            log.error("Received an xdg-surface event %d that isn't handled yet!", opcode)
            return
        self.connection.send(object_id, 4, pack_uint(read_uint(payload, 0)[0]))
        if not self.state.accepted_formats:
            raise RuntimeError("The compositor did not advertise any buffer formats it accepts.")

    def _on_xdg_toplevel(self, _object_id, opcode, payload):
        if opcode != 0:
            log.info("Unconfigured XdgToplevel event %d", opcode)
            return
        width, offset = read_int(payload, 0)
        height, offset = read_int(payload, offset)
        read_array(payload, offset)
        self.state.surface_size = SurfaceSize(width, height)


def show_popup(client, sock):
    """Show a fullscreen window until the break is over or skipped."""
    state = client.state
    check_for_globals(state)
    send = client.connection.send

    surface = client._new_object("wl_surface")
    send(state.compositor, 0, pack_uint(surface))
    xdg_surface = client._new_object("xdg_surface")
    send(state.base, 2, pack_uint(xdg_surface) + pack_uint(surface))
    toplevel = client._new_object("xdg_toplevel")
    send(xdg_surface, 1, pack_uint(toplevel))
    send(toplevel, 2, pack_string("Title"))
    send(toplevel, 3, pack_string("Breaktimer ID"))
    send(toplevel, 11, pack_uint(0))  # fullscreen on any output

    send(surface, 6)  # initial commit
    client.blocking_dispatch()

    size = state.surface_size or SurfaceSize(1920, 1080)
    pixel_format = choose_format(state.accepted_formats)
    stride = size.width * 4

    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir is None:
        raise RuntimeError("XDG_RUNTIME_DIR is not set")
    filename = pool_filename(runtime_dir, size, pixel_format)
    draw_checker_board(filename, size, pixel_format)

    pool = client._new_object("wl_shm_pool")
    fd = os.open(filename, os.O_RDWR | os.O_CREAT, 0o666)
    try:
        send(state.wl_shm, 0, pack_uint(pool) + pack_int(size.height * stride * 2), fds=[fd])
    finally:
        os.close(fd)

    buffer = client._new_object("wl_buffer")
    send(
        pool,
        0,
        pack_uint(buffer) + pack_int(0) + pack_int(size.width) + pack_int(size.height)
        + pack_int(stride) + pack_uint(pixel_format),
    )
    send(surface, 1, pack_uint(buffer) + pack_int(0) + pack_int(0))
    send(surface, 6)
    client.blocking_dispatch()

    wait_until_work(sock)

    for object_id in (pool, buffer, toplevel, xdg_surface, surface):
        send(object_id, 1 if object_id == pool else 0)
    log.info("Destroyed pool, buffer, xdg_top, xdg_surface and wl_surface!")