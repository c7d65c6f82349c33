import socket

import pytest

from breaktimer import timer


@pytest.fixture
def endpoints(tmp_path):
    daemon_path = str(tmp_path / "daemon.sock")
    client_path = str(tmp_path / "client.sock")
    daemon = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    daemon.bind(daemon_path)
    client = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    client.bind(client_path)
    client.settimeout(5)
    yield daemon, client, daemon_path
    daemon.close()
    client.close()


def test_break_command_skips_work(endpoints, capsys):
    daemon, client, daemon_path = endpoints
    client.sendto(b"break", daemon_path)
    assert timer.wait_until_break(daemon, None) is True
    assert "Skipped to break!" in capsys.readouterr().out


def test_time_command_reports_remaining(endpoints):
    daemon, client, daemon_path = endpoints
    client.sendto(b"time", daemon_path)
    client.sendto(b"break", daemon_path)
    assert timer.wait_until_break(daemon, None) is True
    assert client.recv(30) == str(timer.SECONDS_BETWEEN_BREAKS).encode()


def test_reset_command_replies_with_full_duration(endpoints, capsys):
    daemon, client, daemon_path = endpoints
    client.sendto(b"reset", daemon_path)
    client.sendto(b"break", daemon_path)
    assert timer.wait_until_break(daemon, None) is True
    assert client.recv(30) == b"1800"
    assert "Reset timer, next break in 1800 seconds!" in capsys.readouterr().out


def test_set_zero_minutes_ends_work(endpoints, capsys):
    daemon, client, daemon_path = endpoints
    client.sendto(b"set", daemon_path)
    client.sendto(b"0", daemon_path)
    assert timer.wait_until_break(daemon, None) is False
    out = capsys.readouterr().out
    assert "Set timer, next break in 0 seconds!" in out
    assert "Work time is over!" in out


def test_set_changes_remaining_time(endpoints):
    daemon, client, daemon_path = endpoints
    client.sendto(b"set", daemon_path)
    client.sendto(b"5", daemon_path)
    client.sendto(b"time", daemon_path)
    client.sendto(b"break", daemon_path)
    assert timer.wait_until_break(daemon, None) is True
    assert client.recv(30) == str(5 * 60).encode()


def test_set_without_minutes_times_out(endpoints, monkeypatch, capsys):
    daemon, client, daemon_path = endpoints
    monkeypatch.setattr(timer, "NORMAL_READ_TIMEOUT", 1)
    monkeypatch.setattr(timer, "SECONDS_BETWEEN_BREAKS", 1)
    client.sendto(b"set", daemon_path)
    assert timer.wait_until_break(daemon, None) is False
    assert "no time could be set" in capsys.readouterr().out


def test_set_with_invalid_minutes(endpoints):
    daemon, client, daemon_path = endpoints
    client.sendto(b"set", daemon_path)
    client.sendto(b"-4", daemon_path)
    with pytest.raises(ValueError):
        timer.wait_until_break(daemon, None)


def test_work_time_runs_out(endpoints, monkeypatch, capsys):
    daemon, _, _ = endpoints
    monkeypatch.setattr(timer, "SECONDS_BETWEEN_BREAKS", 1)
    assert timer.wait_until_break(daemon, None) is False
    assert "Work time is over!" in capsys.readouterr().out


def test_unknown_command_raises(endpoints):
    daemon, client, daemon_path = endpoints
    client.sendto(b"dance", daemon_path)
    with pytest.raises(ValueError):
        timer.wait_until_break(daemon, None)


def test_invalid_utf8_raises(endpoints):
    daemon, client, daemon_path = endpoints
    client.sendto(b"\xff\xfe", daemon_path)
    with pytest.raises(UnicodeDecodeError):
        timer.wait_until_break(daemon, None)


def test_unbound_sender_is_rejected(endpoints):
    daemon, _, daemon_path = endpoints
    with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as anonymous:
        anonymous.sendto(b"time", daemon_path)
        with pytest.raises(ValueError, match="unbound socket"):
            timer.wait_until_break(daemon, None)


def test_skip_ends_break(endpoints, capsys):
    daemon, client, daemon_path = endpoints
    client.sendto(b"skip", daemon_path)
    assert timer.wait_until_work(daemon) is None
    out = capsys.readouterr().out
    assert "Break time!" in out
    assert "Break was skipped!" in out


def test_unknown_break_message_is_reported(endpoints, capsys):
    daemon, client, daemon_path = endpoints
    client.sendto(b"hello", daemon_path)
    client.sendto(b"skip", daemon_path)
    timer.wait_until_work(daemon)
    out = capsys.readouterr().out
    assert "[break]: Received unknown argument 'hello'" in out
    assert out.index("hello") < out.index("Break was skipped!")


def test_break_runs_out(endpoints, monkeypatch, capsys):
    daemon, _, _ = endpoints
    monkeypatch.setattr(timer, "BREAK_DURATION_SECONDS", 1)
    timer.wait_until_work(daemon)
    assert "Break is over!" in capsys.readouterr().out


def test_empty_break_message_raises(endpoints):
    daemon, client, daemon_path = endpoints
    client.sendto(b"", daemon_path)
    with pytest.raises(ValueError):
        timer.wait_until_work(daemon)