"""The break timer service: work timer, notifications, sound and break window."""

from __future__ import annotations

import argparse
import os
import socket
import sys
import time
from pathlib import Path

from .notify import DBusError, send_notification
from .popup import WaylandClient, check_for_globals, show_popup
from .systemd import READY, SystemdError, booted, notify, receive_descriptors
from .timer import wait_until_break
from .wire import WaylandConnection


def play_sound(path):
    """Start playing a sound file on the default device and return the sound."""
    if not Path(path).is_file():
        raise FileNotFoundError(f"sound file {path} does not exist")
    os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
    from pygame import mixer

    if not mixer.get_init():
        mixer.init()
    sound = mixer.Sound(str(path))
    sound.play()
    return sound


def _activation_socket():
    descriptors = receive_descriptors(True)
    if len(descriptors) != 1:
        raise SystemdError(f"expected exactly one socket, received {len(descriptors)}")
    sock = socket.socket(fileno=descriptors[0])
    if sock.family != socket.AF_UNIX or sock.type != socket.SOCK_DGRAM:
        sock.close()
        raise SystemdError("The systemd socket was configured incorrectly!")
    return sock


def _run(sound):
    sock = _activation_socket()
    connection = WaylandConnection.from_env()
    try:
        client = WaylandClient(connection)
        client.blocking_dispatch()
        check_for_globals(client.state)
        if not notify(True, READY):
            raise SystemdError(
                "The systemd service seems to have been configured incorrectly (not Type=notify)!"
            )
        while True:
            skipped = wait_until_break(
                sock,
                on_suspend=lambda: send_notification(
                    "Reset break timer",
                    "The timer was reset because system suspension was detected.",
                ),
            )
            if not skipped:
                send_notification("Its break time!", "The next break starts in 10 seconds.")
                time.sleep(10)
            if sound is not None:
                play_sound(sound)
            show_popup(client, sock)
            if sound is not None:
                play_sound(sound)
    finally:
        connection.close()


def main(argv=None):
    """Run the service until it fails; return the exit status."""
    parser = argparse.ArgumentParser(prog="wlbreaktime-daemon")
    parser.add_argument("--sound", type=Path, help="sound played when a break starts and ends")
    args = parser.parse_args(argv)
    if not booted():
        print("Not running systemd, early exit.")
        return 0
    try:
        _run(args.sound)
    except (SystemdError, DBusError, OSError, RuntimeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())