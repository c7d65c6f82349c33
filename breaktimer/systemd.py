"""Socket activation and readiness notification for systemd services."""

from __future__ import annotations

import os
import socket
from collections.abc import Iterable
from pathlib import Path

SYSTEMD_RUNTIME_DIR = Path("/run/systemd/system")
LISTEN_FDS_START = 3
READY = "READY=1"

_ACTIVATION_VARIABLES = ("LISTEN_PID", "LISTEN_FDS", "LISTEN_FDNAMES")


class SystemdError(Exception):
    """Raised when the systemd environment is missing or inconsistent."""


def booted() -> bool:
    """Return True if the system was booted with systemd."""
    return SYSTEMD_RUNTIME_DIR.is_dir()


def _parse_int(name: str, text: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise SystemdError(f"{name} is not a number: {text!r}") from None


def receive_descriptors(unset_environment: bool) -> list[int]:
    """Return the file descriptors passed to this process by socket activation."""
    try:
        pid_text = os.environ.get("LISTEN_PID")
        count_text = os.environ.get("LISTEN_FDS")
    finally:
        if unset_environment:
            for name in _ACTIVATION_VARIABLES:
                os.environ.pop(name, None)

    if pid_text is None:
        raise SystemdError("LISTEN_PID is not set")
    if count_text is None:
        raise SystemdError("LISTEN_FDS is not set")

    pid = _parse_int("LISTEN_PID", pid_text)
    if pid != os.getpid():
        raise SystemdError(
            f"descriptors were passed to process {pid}, not to this one ({os.getpid()})"
        )
    count = _parse_int("LISTEN_FDS", count_text)
    if count < 0:
        raise SystemdError(f"LISTEN_FDS is negative: {count}")
    return list(range(LISTEN_FDS_START, LISTEN_FDS_START + count))


def notify(unset_environment: bool, state: str | Iterable[str]) -> bool:
    """Send state assignments such as READY=1 to the service manager.

    Returns False when no notification socket is configured.
    """
    assignments = [state] if isinstance(state, str) else list(state)
    for assignment in assignments:
        if "=" not in assignment or "\n" in assignment:
            raise SystemdError(f"invalid notification state {assignment!r}")

    address = os.environ.get("NOTIFY_SOCKET")
    if unset_environment:
        os.environ.pop("NOTIFY_SOCKET", None)
    if not address:
        return False
    if address.startswith("@"):
        address = "\0" + address[1:]

    payload = "\n".join(assignments).encode()
    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as sock:
            sent = sock.sendto(payload, address)
    except OSError as exc:
        raise SystemdError(f"unable to notify service manager: {exc}") from exc
    return sent == len(payload)