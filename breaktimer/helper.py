"""Command-line client that sends commands to the running break timer."""

from __future__ import annotations

import errno
import os
import socket
import sys
from collections.abc import Sequence
from contextlib import suppress

SOCKET_NAME = "wlbreaktime.socket"
HELPER_SOCKET_NAME = "wlbreaktime-helper.socket"
COMMANDS = ("break", "set", "reset", "time", "skip")

_MAX_MINUTES = 0xFFFF


class HelperError(Exception):
    """A problem that stops the helper, with the exit status it should lead to."""

    def __init__(self, message: str, exit_code: int = 1) -> None:
        super().__init__(message)
        self.exit_code = exit_code


def _is_valid_minutes(text: str) -> bool:
    digits = text[1:] if text.startswith("+") else text
    return (
        bool(digits)
        and digits.isascii()
        and digits.isdigit()
        and int(digits) <= _MAX_MINUTES
    )


def parse_arguments(argv: Sequence[str]) -> tuple[str, str | None]:
    """Validate the arguments and return the command and, for set, the minutes."""
    args = list(argv)
    if not args:
        raise HelperError("No arguments provided!", exit_code=0)
    if len(args) > 2:
        raise HelperError("Too many arguments!", exit_code=0)

    command, *rest = args
    if command == "set":
        if not rest:
            raise HelperError("no duration to set to provided!")
        minutes = rest[0]
        if not _is_valid_minutes(minutes):
            raise HelperError(f"Second argument '{minutes}' is no valid duration!")
        return command, minutes
    if command in COMMANDS:
        if rest:
            raise HelperError("did not expect a second argument!")
        return command, None
    raise HelperError(
        "Incorrect first argument! Please provide one of the following arguments: "
        + "|".join(COMMANDS),
        exit_code=0,
    )


def format_remaining(seconds: int) -> str:
    """Describe the time left until the next break."""
    if seconds > 60:
        minutes, rest = divmod(seconds, 60)
        return f"{minutes} minutes and {rest} seconds remain until the next break!"
    return f"{seconds} seconds remain until the next break!"


def bind_helper_socket(runtime_dir: str) -> socket.socket:
    """Bind the helper's datagram socket, replacing a stale one left behind."""
    path = os.path.join(runtime_dir, HELPER_SOCKET_NAME)
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        try:
            sock.bind(path)
        except OSError as exc:
            if exc.errno != errno.EADDRINUSE:
                raise HelperError(f"Unable to bind socket because of error '{exc}'!") from exc
            # a previous run probably crashed and left the socket linked
            os.remove(path)
            try:
                sock.bind(path)
            except OSError as retry_exc:
                raise HelperError(
                    "Unable to bind socket even on second attempt!"
                ) from retry_exc
    except BaseException:
        sock.close()
        raise
    return sock


def _run(argv: Sequence[str]) -> None:
    command, minutes = parse_arguments(argv)
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir is None:
        raise HelperError("XDG_RUNTIME_DIR is not set")

    daemon_path = os.path.join(runtime_dir, SOCKET_NAME)
    helper_path = os.path.join(runtime_dir, HELPER_SOCKET_NAME)
    sock = bind_helper_socket(runtime_dir)
    try:
        with sock:
            try:
                sock.sendto(command.encode(), daemon_path)
            except FileNotFoundError:
                raise HelperError("Breaktime does not seem to be running!") from None
            except OSError as exc:
                raise HelperError(
                    f"Error '{exc}' unexpectedly occured while sending a message!"
                ) from exc

            if command == "set" and minutes is not None:
                sock.sendto(minutes.encode(), daemon_path)
            elif command == "time":
                reply = sock.recv(30).decode("utf-8")
                if not reply.isascii() or not reply.isdigit():
                    raise HelperError(f"Received an invalid reply '{reply}'!")
                print(format_remaining(int(reply)))
    finally:
        with suppress(FileNotFoundError):
            os.remove(helper_path)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the helper and return its exit status."""
    if argv is None:
        argv = sys.argv[1:]
    try:
        _run(argv)
    except HelperError as exc:
        print(exc, file=sys.stdout if exc.exit_code == 0 else sys.stderr)
        return exc.exit_code
    return 0


if __name__ == "__main__":
    sys.exit(main())