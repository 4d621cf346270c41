"""Tests for liveness probes."""

import asyncio
import os
import shutil
import socket

import pytest
from unittest.mock import AsyncMock, patch

from netview_scanner._types import NOT_ALIVE, ProbeResult
from netview_scanner.probes import (
    EchoProbe,
    KnockOutcome,
    LivenessProbe,
    ProbeStrategy,
    TcpConnectProbe,
    tcp_knock,
)


def _unused_port() -> int:
    """Return a loopback port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class FakeStrategy(ProbeStrategy):
    """Strategy returning a canned result and recording calls."""

    def __init__(self, name, result=None, error=None):
        self._name = name
        self._result = result or NOT_ALIVE
        self._error = error
        self.calls = []

    @property
    def name(self):
        return self._name

    async def probe(self, address):
        self.calls.append(address)
        if self._error:
            raise self._error
        return self._result


class TestTcpKnock:
    """Tests for single TCP connect attempts."""

    @pytest.mark.asyncio
    async def test_open_port(self):
        """Should report OPEN when a listener accepts."""
        async def handle(reader, writer):
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        try:
            outcome = await tcp_knock("127.0.0.1", port, 1.0)
        finally:
            server.close()
            await server.wait_closed()

        assert outcome == KnockOutcome.OPEN
        assert outcome.affirmative

    @pytest.mark.asyncio
    async def test_refused_port(self):
        """Should report REFUSED when nothing listens."""
        outcome = await tcp_knock("127.0.0.1", _unused_port(), 1.0)

        assert outcome == KnockOutcome.REFUSED
        assert outcome.affirmative

    def test_timeout_and_error_not_affirmative(self):
        """Timeouts and other errors prove nothing."""
        assert not KnockOutcome.TIMEOUT.affirmative
        assert not KnockOutcome.ERROR.affirmative


class TestEchoProbe:
    """Tests for the ping-based probe."""

    def test_linux_command(self):
        """Linux ping takes whole seconds."""
        probe = EchoProbe(timeout=1.0, system="Linux")
        assert probe.build_command("ping", "10.0.0.1") == ["ping", "-c", "1", "-W", "1", "10.0.0.1"]

    def test_linux_rounds_up(self):
        """Sub-second timeouts round up to one second."""
        probe = EchoProbe(timeout=0.3, system="Linux")
        assert probe.build_command("ping", "10.0.0.1")[4] == "1"

    def test_darwin_command(self):
        """macOS ping takes milliseconds."""
        probe = EchoProbe(timeout=1.0, system="Darwin")
        assert probe.build_command("ping", "10.0.0.1") == ["ping", "-c", "1", "-W", "1000", "10.0.0.1"]

    def test_windows_command(self):
        """Windows ping uses -n and -w."""
        probe = EchoProbe(timeout=1.0, system="Windows")
        assert probe.build_command("ping.exe", "10.0.0.1") == [
            "ping.exe", "-n", "1", "-w", "1000", "10.0.0.1",
        ]

    @pytest.mark.asyncio
    @pytest.mark.skipif(shutil.which("true") is None, reason="requires 'true' binary")
    async def test_zero_exit_is_alive(self):
        """Exit status 0 means the host answered."""
        probe = EchoProbe(timeout=1.0, ping_binary=shutil.which("true"), system="Linux")
        result = await probe.probe("10.0.0.1")

        assert result.alive is True
        assert result.method == "echo"
        assert result.rtt is not None

    @pytest.mark.asyncio
    @pytest.mark.skipif(shutil.which("false") is None, reason="requires 'false' binary")
    async def test_nonzero_exit_is_not_alive(self):
        """Non-zero exit means no reply."""
        probe = EchoProbe(timeout=1.0, ping_binary=shutil.which("false"), system="Linux")
        assert await probe.probe("10.0.0.1") == NOT_ALIVE

    @pytest.mark.asyncio
    @pytest.mark.skipif(os.name != "posix", reason="requires a POSIX shell")
    async def test_cancel_kills_ping(self, tmp_path):
        """Cancelling the probe must not leave the ping process running."""
        slow_ping = tmp_path / "slow-ping"
        slow_ping.write_text("#!/bin/sh\nexec sleep 30\n")
        slow_ping.chmod(0o755)

        spawned = []
        real_spawn = asyncio.create_subprocess_exec

        async def spawn(*args, **kwargs):
            proc = await real_spawn(*args, **kwargs)
            spawned.append(proc)
            return proc

        probe = EchoProbe(timeout=10.0, ping_binary=str(slow_ping), system="Linux")
        with patch("netview_scanner.probes.asyncio.create_subprocess_exec", new=spawn):
            task = asyncio.create_task(probe.probe("10.0.0.1"))
            while not spawned:
                await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert spawned[0].returncode is not None


class TestTcpConnectProbe:
    """Tests for the hidden host TCP probe."""

    @pytest.mark.asyncio
    async def test_stops_at_first_affirmative(self):
        """Should try ports in order and stop on the first answer."""
        knock = AsyncMock(side_effect=[KnockOutcome.TIMEOUT, KnockOutcome.REFUSED, KnockOutcome.OPEN])
        probe = TcpConnectProbe([7, 9, 13], timeout=0.2, knock=knock)

        result = await probe.probe("10.0.0.5")

        assert result.alive is True
        assert result.method == "tcp:9/refused"
        assert [c.args[1] for c in knock.call_args_list] == [7, 9]

    @pytest.mark.asyncio
    async def test_all_silent(self):
        """Should be inconclusive when no port answers."""
        knock = AsyncMock(return_value=KnockOutcome.TIMEOUT)
        probe = TcpConnectProbe([7, 9], knock=knock)

        assert await probe.probe("10.0.0.5") == NOT_ALIVE
        assert knock.await_count == 2

    @pytest.mark.asyncio
    async def test_against_loopback(self):
        """A refused loopback port proves the host is present."""
        probe = TcpConnectProbe([_unused_port()], timeout=1.0)
        result = await probe.probe("127.0.0.1")
        assert result.alive is True


class TestLivenessProbe:
    """Tests for the ordered strategy chain."""

    @pytest.mark.asyncio
    async def test_first_alive_wins(self):
        """Later strategies are not consulted after a positive result."""
        first = FakeStrategy("first", ProbeResult(alive=True, rtt=0.01, method="first"))
        second = FakeStrategy("second", ProbeResult(alive=True, method="second"))

        result = await LivenessProbe([first, second]).check("10.0.0.1")

        assert result.method == "first"
        assert second.calls == []

    @pytest.mark.asyncio
    async def test_falls_through(self):
        """Inconclusive strategies hand over to the next one."""
        first = FakeStrategy("first")
        second = FakeStrategy("second", ProbeResult(alive=True, method="second"))

        result = await LivenessProbe([first, second]).check("10.0.0.1")

        assert result.method == "second"
        assert first.calls == ["10.0.0.1"]

    @pytest.mark.asyncio
    async def test_strategy_error_is_inconclusive(self):
        """A raising strategy must not abort the chain."""
        broken = FakeStrategy("broken", error=OSError("no ping"))
        backup = FakeStrategy("backup", ProbeResult(alive=True, method="backup"))

        result = await LivenessProbe([broken, backup]).check("10.0.0.1")

        assert result.alive is True
        assert result.method == "backup"

    @pytest.mark.asyncio
    async def test_missing_ping_binary(self):
        """An unrunnable ping binary leaves the host not alive."""
        probe = LivenessProbe([EchoProbe(ping_binary="/nonexistent/ping")])
        assert await probe.check("10.0.0.1") == NOT_ALIVE

    def test_for_settings_without_hidden_hosts(self):
        """Only the echo probe by default."""
        probe = LivenessProbe.for_settings()
        assert [s.name for s in probe.strategies] == ["echo"]

    def test_for_settings_with_hidden_hosts(self):
        """Hidden host search appends the TCP probe."""
        probe = LivenessProbe.for_settings(True, [80, 22, 80])
        assert [s.name for s in probe.strategies] == ["echo", "tcp"]
        assert probe.strategies[1].ports == (80, 22)

    def test_for_settings_hidden_without_ports(self):
        """Hidden host search with no ports adds nothing."""
        probe = LivenessProbe.for_settings(True, [])
        assert [s.name for s in probe.strategies] == ["echo"]
