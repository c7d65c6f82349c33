# breaktimer

A break reminder for Wayland desktops. On a fixed schedule the daemon warns
you that a break is coming and then covers the screen with a fullscreen
window. When the break is over, or you skip it, the window closes and a new
work period begins.

- Work period: 30 minutes (1800 seconds).
- Break: 80 seconds.
- Before a scheduled break a desktop notification ("Its break time!") is
  shown and the daemon waits 10 seconds. A break started with
  `breaktimer-helper break` begins at once, without the notification.
- If a read on the control socket is interrupted, which happens when the
  system wakes from suspension, the work timer starts over and a
  "Reset break timer" notification is shown.
- With `--sound FILE` the daemon plays that file when a break starts and
  again when it ends.

## Requirements

- Linux with a Wayland compositor that offers `wl_compositor`, `wl_shm` and
  `xdg_wm_base`. The daemon speaks the Wayland wire protocol itself over the
  socket named by `WAYLAND_DISPLAY` (default `wayland-0`) in
  `XDG_RUNTIME_DIR`.
- systemd: the daemon takes its control socket from socket activation and
  reports readiness with `READY=1`, so the service must be `Type=notify`.
- A notification service on the D-Bus session bus, reached through
  `DBUS_SESSION_BUS_ADDRESS` (a `unix:path=` or `unix:abstract=` address).
- `XDG_RUNTIME_DIR` set in the environment.
- pygame, used only for `--sound`.

## Installation

```
pip install .
```

## Running the daemon

`breaktimer-daemon` is meant to be started by systemd user units. It expects
exactly one Unix datagram socket passed in by socket activation, which the
helper reaches at `$XDG_RUNTIME_DIR/wlbreaktime.socket`. If the system was
not booted with systemd it prints `Not running systemd, early exit.` and
exits with status 0. Other failures are printed as `Error: ...` and the
daemon exits with status 1.

```
breaktimer-daemon [--sound FILE]
```

An example pair of user units:

`~/.config/systemd/user/breaktimer.socket`

```
[Socket]
ListenDatagram=%t/wlbreaktime.socket

[Install]
WantedBy=sockets.target
```

`~/.config/systemd/user/breaktimer.service`

```
[Service]
Type=notify
ExecStart=breaktimer-daemon
```

Then enable the socket:

```
systemctl --user enable --now breaktimer.socket
```

## Controlling the timer

`breaktimer-helper` sends one command to the running daemon. It binds its own
socket at `$XDG_RUNTIME_DIR/wlbreaktime-helper.socket`, replacing a stale one
left by an earlier run, and removes it when done.

```
breaktimer-helper time        # how long until the next break
breaktimer-helper set 45      # next break in 45 minutes (0 to 65535)
breaktimer-helper reset       # restart the 30-minute work period
breaktimer-helper break       # start a break now
breaktimer-helper skip        # end the current break
```

`time` prints, for more than a minute left:

```
12 minutes and 5 seconds remain until the next break!
```

and otherwise `N seconds remain until the next break!`.

With no arguments, too many arguments or an unknown command the helper prints
a message and exits with status 0. A missing or invalid duration for `set`,
or a second argument to another command, is an error (status 1). If the
daemon's socket does not exist the helper reports
`Breaktime does not seem to be running!`.

Commands are only acted on in the phase they belong to: `time`, `set`,
`reset` and `break` during a work period, `skip` during a break.

## Using it as a library

The pieces can be used on their own, for example:

- `breaktimer.helper.parse_arguments` and `format_remaining`
- `breaktimer.timer.wait_until_break` and `wait_until_work`
- `breaktimer.notify.send_notification(summary, body)`
- `breaktimer.systemd.booted`, `receive_descriptors` and `notify`
- `breaktimer.wire` for encoding and decoding Wayland messages

## Limitations

- No sound is bundled; without `--sound` the daemon is silent.
- The work and break lengths are fixed; only the next work period can be
  changed, with `breaktimer-helper set`.
- The break window shows no text or countdown. Its buffer comes from a file
  written once per size and format in `XDG_RUNTIME_DIR`
  (`wlbreaktime-pool-<width>-<height><format>`) and reused afterwards.
- The daemon cannot run outside systemd socket activation.

## Running the tests

```
pip install .[test]
pytest
```