"""Tests for SessionSupervisor."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from conftest import FakeWebSocket, close, ping, text

from powertrade_ws.errors import (
    PowerTradeConnectionError,
    PowerTradeHandshakeError,
    PowerTradeRetryExhausted,
)
from powertrade_ws.supervisor import SessionState, SessionSupervisor


def set_then(shutdown, message):
    """Script item that sets the shutdown flag while the read is in flight."""

    def _item():
        shutdown.set()
        return message

    return _item


class TestSessionSupervisorLifecycle:
    """Tests for the normal lifecycle."""

    def test_initial_state(self, config, shutdown):
        """Test a new supervisor starts in CONNECTING."""
        supervisor = SessionSupervisor(config, shutdown)
        assert supervisor.state is SessionState.CONNECTING
        assert supervisor.iterations == 0

    @pytest.mark.asyncio
    async def test_stops_at_iteration_cap(self, make_config, shutdown, connector, connect_ws):
        """Test a healthy session performs exactly epoch_count reads."""
        config = make_config(epoch_count=4)
        ws = FakeWebSocket([text(f"m{i}") for i in range(10)])
        connect_ws.return_value = ws

        supervisor = SessionSupervisor(config, shutdown, connector=connector)
        await supervisor.run()

        assert ws.receive_calls == 4
        assert supervisor.iterations == 4
        assert supervisor.state is SessionState.TERMINATED
        assert ws.closed

    @pytest.mark.asyncio
    async def test_shutdown_after_last_cycle_has_no_effect(
        self, config, shutdown, connector, connect_ws
    ):
        """Test shutdown raised during the final cycle changes nothing."""
        ws = FakeWebSocket([text("a"), text("b"), set_then(shutdown, text("c"))])
        connect_ws.return_value = ws

        supervisor = SessionSupervisor(config, shutdown, connector=connector)
        await supervisor.run()

        assert ws.receive_calls == 3
        assert supervisor.iterations == 3

    @pytest.mark.asyncio
    async def test_shutdown_before_cycle(self, make_config, shutdown, connector, connect_ws):
        """Test shutdown seen at cycle k ends the session without reading cycle k."""
        config = make_config(epoch_count=5)
        ws = FakeWebSocket([text("a"), set_then(shutdown, text("b")), text("c")])
        connect_ws.return_value = ws

        supervisor = SessionSupervisor(config, shutdown, connector=connector)
        await supervisor.run()

        assert ws.receive_calls == 2
        assert supervisor.iterations == 2
        assert supervisor.state is SessionState.TERMINATED

    @pytest.mark.asyncio
    async def test_shutdown_before_first_cycle(self, config, shutdown, connector, connect_ws):
        """Test a pre-set shutdown flag means no reads at all."""
        ws = FakeWebSocket([text("a")])
        connect_ws.return_value = ws
        shutdown.set()

        await SessionSupervisor(config, shutdown, connector=connector).run()

        assert ws.receive_calls == 0

    @pytest.mark.asyncio
    async def test_shutdown_cuts_read_delay(self, make_config, shutdown, connector, connect_ws):
        """Test a long inter-read delay is interrupted by shutdown."""
        config = make_config(read_delay=60)
        connect_ws.return_value = FakeWebSocket([set_then(shutdown, text("a"))])

        await SessionSupervisor(config, shutdown, connector=connector).run()

    @pytest.mark.asyncio
    async def test_empty_frame_is_noop(self, make_config, shutdown, connector, connect_ws):
        """Test empty data frames are skipped but still count as a cycle."""
        config = make_config(epoch_count=2)
        ws = FakeWebSocket([text(""), text("x")])
        connect_ws.return_value = ws

        supervisor = SessionSupervisor(config, shutdown, connector=connector)
        await supervisor.run()

        assert supervisor.iterations == 2
        assert ws.sent == []
        assert connect_ws.call_count == 1

    @pytest.mark.asyncio
    async def test_read_timeout_is_idle_cycle(self, make_config, shutdown, connector, connect_ws):
        """Test an expired read counts as a cycle without reconnecting."""
        config = make_config(epoch_count=2, read_timeout=0.5)
        ws = FakeWebSocket([TimeoutError(), text("x")])
        connect_ws.return_value = ws

        supervisor = SessionSupervisor(config, shutdown, connector=connector)
        await supervisor.run()

        assert supervisor.iterations == 2
        assert connect_ws.call_count == 1


class TestSessionSupervisorControlFrames:
    """Tests for ping handling."""

    @pytest.mark.asyncio
    async def test_ping_answered_with_pong(self, make_config, shutdown, connector, connect_ws):
        """Test a ping is answered with a pong carrying the same payload."""
        config = make_config(epoch_count=1)
        ws = FakeWebSocket([ping(b"beat")])
        connect_ws.return_value = ws

        await SessionSupervisor(config, shutdown, connector=connector).run()

        assert ws.sent == [("pong", b"beat")]

    @pytest.mark.asyncio
    async def test_pong_sent_after_shutdown(self, make_config, shutdown, connector, connect_ws):
        """Test a ping read before shutdown is still answered."""
        config = make_config(epoch_count=5)
        ws = FakeWebSocket([set_then(shutdown, ping(b"late"))])
        connect_ws.return_value = ws

        supervisor = SessionSupervisor(config, shutdown, connector=connector)
        await supervisor.run()

        assert ws.sent == [("pong", b"late")]
        assert supervisor.iterations == 1

    @pytest.mark.asyncio
    async def test_pong_failure_reconnects(self, make_config, shutdown, connector, connect_ws):
        """Test a failed pong moves the session through RECONNECTING."""
        config = make_config(epoch_count=2)
        broken = FakeWebSocket([ping()], fail_sends=True)
        healthy = FakeWebSocket([text("ok")])
        connect_ws.side_effect = [broken, healthy]

        supervisor = SessionSupervisor(config, shutdown, connector=connector)
        await supervisor.run()

        assert connect_ws.call_count == 2
        assert broken.closed
        assert healthy.receive_calls == 1

    @pytest.mark.asyncio
    async def test_server_close_reconnects(self, make_config, shutdown, connector, connect_ws):
        """Test a close frame from the server triggers a reconnect."""
        config = make_config(epoch_count=2)
        connect_ws.side_effect = [FakeWebSocket([close()]), FakeWebSocket([text("ok")])]

        await SessionSupervisor(config, shutdown, connector=connector).run()

        assert connect_ws.call_count == 2

    @pytest.mark.asyncio
    async def test_periodic_probe(self, make_config, shutdown, connector, connect_ws):
        """Test ping_every sends a liveness probe every N cycles."""
        config = make_config(epoch_count=4, ping_every=2)
        ws = FakeWebSocket([text(str(i)) for i in range(4)])
        connect_ws.return_value = ws

        await SessionSupervisor(config, shutdown, connector=connector).run()

        assert ws.sent_kinds() == ["ping", "ping"]

    @pytest.mark.asyncio
    async def test_probe_exhaustion_is_fatal(self, make_config, shutdown, connector, connect_ws):
        """Test an unsendable probe ends the session with an error."""
        config = make_config(epoch_count=4, ping_every=1, ping_attempts=1)
        connect_ws.return_value = FakeWebSocket([text("a")], fail_sends=True)

        supervisor = SessionSupervisor(config, shutdown, connector=connector)
        with pytest.raises(PowerTradeRetryExhausted):
            await supervisor.run()

        assert supervisor.state is SessionState.TERMINATED


class TestSessionSupervisorFailures:
    """Tests for failure handling."""

    @pytest.mark.asyncio
    async def test_read_failure_reconnects(self, config, shutdown, connector, connect_ws):
        """Test a read error reconnects and the loop carries on."""
        first = FakeWebSocket([text("a"), ConnectionResetError("reset")])
        second = FakeWebSocket([text("b")])
        connect_ws.side_effect = [first, second]

        supervisor = SessionSupervisor(config, shutdown, connector=connector)
        await supervisor.run()

        assert connect_ws.call_count == 2
        assert supervisor.iterations == 3
        assert second.receive_calls == 1
        assert second.closed

    @pytest.mark.asyncio
    async def test_reconnect_failure_terminates(self, config, shutdown, connector, connect_ws):
        """Test a failed reconnect ends this supervisor with the error."""
        connect_ws.side_effect = [
            FakeWebSocket([ConnectionResetError("reset")]),
            PowerTradeConnectionError("refused"),
        ]

        supervisor = SessionSupervisor(config, shutdown, connector=connector)
        with pytest.raises(PowerTradeConnectionError, match="refused"):
            await supervisor.run()

        assert supervisor.state is SessionState.TERMINATED
        assert supervisor.iterations == 0

    @pytest.mark.asyncio
    async def test_connect_failure_propagates(self, config, shutdown):
        """Test an initial connect failure is raised without any read."""
        connector = AsyncMock(side_effect=PowerTradeHandshakeError(401, "rejected"))

        supervisor = SessionSupervisor(config, shutdown, connector=connector)
        with pytest.raises(PowerTradeHandshakeError):
            await supervisor.run()

        connector.assert_awaited_once_with(config)
        assert supervisor.state is SessionState.TERMINATED
