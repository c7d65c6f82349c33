"""Work and break timers driven by commands arriving on a datagram socket."""

from __future__ import annotations

import socket
import time
from collections.abc import Callable

BREAK_DURATION_SECONDS = 80
SECONDS_BETWEEN_BREAKS = 1800
NORMAL_READ_TIMEOUT = 3

_BUFFER_SIZE = 300


def _elapsed(start: float) -> int:
    return int(time.monotonic() - start)


def _decode(data: bytes) -> str:
    if not data:
        raise ValueError("received an empty message")
    return data.decode("utf-8")


def _parse_unsigned(text: str) -> int:
    digits = text[1:] if text.startswith("+") else text
    if not digits or not digits.isascii() or not digits.isdigit():
        raise ValueError(f"{text!r} is not a valid number of minutes")
    return int(digits)


def _reply_address(address: object) -> str:
    if not isinstance(address, str) or not address:
        raise ValueError("Unable to respond, because the message came from an unbound socket!")
    return address


def wait_until_break(
    sock: socket.socket, on_suspend: Callable[[], None] | None = None
) -> bool:
    """Serve commands until work time is over; return True if the break was requested."""
    print("Work time!")
    start = time.monotonic()
    work_duration = SECONDS_BETWEEN_BREAKS
    breaktime = False
    skipped = False

    while not breaktime:
        remaining = work_duration - _elapsed(start)
        sock.settimeout(remaining if remaining > 0 else 1)
        try:
            data, address = sock.recvfrom(_BUFFER_SIZE)
        except TimeoutError:
            pass
        except InterruptedError:
            # an interrupted read means the system woke up from suspension
            work_duration = SECONDS_BETWEEN_BREAKS
            start = time.monotonic()
            print(
                "Reset timer because system suspension was detected. "
                f"Next break is in {work_duration} seconds!"
            )
            if on_suspend is not None:
                on_suspend()
        else:
            command = _decode(data)
            reply_to = _reply_address(address)
            if command == "break":
                print("Skipped to break!")
                breaktime = True
                skipped = True
            elif command == "set":
                sock.settimeout(NORMAL_READ_TIMEOUT)
                try:
                    minutes_data, _ = sock.recvfrom(_BUFFER_SIZE)
                except TimeoutError:
                    print(
                        "While trying to read the second argument (minutes), a timeout "
                        "happened and no time could be set! Probably the helper crashed."
                    )
                else:
                    work_duration = _parse_unsigned(_decode(minutes_data)) * 60
                    start = time.monotonic()
                    print(f"Set timer, next break in {work_duration} seconds!")
            elif command == "reset":
                work_duration = SECONDS_BETWEEN_BREAKS
                start = time.monotonic()
                sock.sendto(str(work_duration).encode(), reply_to)
                print(f"Reset timer, next break in {work_duration} seconds!")
            elif command == "time":
                remainder = max(work_duration - _elapsed(start), 0)
                print(
                    "Responding to inquiry about remaining time before break! "
                    f"{remainder} seconds remain."
                )
                sock.sendto(str(remainder).encode(), reply_to)
            else:
                raise ValueError(f"unknown command {command!r}")

        if _elapsed(start) >= work_duration:
            print("Work time is over!")
            breaktime = True

    return skipped


def wait_until_work(sock: socket.socket) -> None:
    """Block for the length of a break, ending early when a skip command arrives."""
    print("Break time!")
    start = time.monotonic()
    sock.settimeout(BREAK_DURATION_SECONDS)

    while True:
        try:
            data = sock.recv(_BUFFER_SIZE)
        except TimeoutError:
            elapsed = _elapsed(start)
            if elapsed < BREAK_DURATION_SECONDS:
                print(f"[break]: Read was interrupted after {elapsed} seconds.")
                sock.settimeout(BREAK_DURATION_SECONDS - elapsed)
            else:
                print("Break is over!")
                return
        else:
            text = _decode(data)
            if text == "skip":
                print("Break was skipped!")
                return
            print(f"[break]: Received unknown argument '{text}'")