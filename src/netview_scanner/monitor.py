"""
Host monitor - periodic online/offline tracking for a fixed host set.

A session checks every monitored host immediately and then once per
interval until stopped. Each host is first knocked on the ports it had
open when it was discovered; only if none of them answers does the
monitor fall back to the full liveness probe. A status change
notification is published only when the result differs from the last
stored status.

At most one session exists at a time. Starting a new session cancels
and fully joins the previous one first.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence, Union

from ._types import Host, StatusChangeEvent, normalize_ports
from .concurrency import CancellationToken, WorkerPool
from .events import EventSink, LoggingEventSink
from .probes import HIDDEN_HOST_TIMEOUT, LivenessFactory, LivenessProbe, tcp_knock
from .state import ScannerState

logger = logging.getLogger(__name__)

MONITOR_INTERVAL = 10.0
MAX_CONCURRENT_CHECKS = 32


class MonitorState(str, Enum):
    """Lifecycle of the monitor."""
    STOPPED = "stopped"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"


@dataclass
class MonitorSession:
    """One continuous monitoring run over a fixed host set."""
    monitored_hosts: dict[str, Host]
    monitored_status: dict[str, bool]
    search_hidden_hosts: bool
    hidden_host_ports: tuple[int, ...]
    liveness: LivenessProbe
    token: CancellationToken = field(default_factory=CancellationToken)
    cycles: int = 0


class HostMonitor:
    """
    Tracks online/offline transitions of previously discovered hosts.

    Session maps and the active flag are guarded by one lock. Network
    I/O never happens while the lock is held: each cycle snapshots what
    it needs, probes, then re-acquires the lock only to commit results.
    """

    def __init__(
        self,
        state: ScannerState,
        sink: Optional[EventSink] = None,
        liveness_factory: Optional[LivenessFactory] = None,
        interval: float = MONITOR_INTERVAL,
        knock_timeout: float = HIDDEN_HOST_TIMEOUT,
        max_concurrent_checks: int = MAX_CONCURRENT_CHECKS,
        knock: Callable = tcp_knock,
    ):
        self.shared_state = state
        self.sink = sink or LoggingEventSink()
        self._liveness_factory = liveness_factory or LivenessProbe.for_settings
        self.interval = interval
        self.knock_timeout = knock_timeout
        self.max_concurrent_checks = max_concurrent_checks
        self._knock = knock

        self.status = MonitorState.STOPPED
        self._session: Optional[MonitorSession] = None
        self._active = False
        self._lock = asyncio.Lock()
        # Serializes start/stop so sessions never overlap
        self._lifecycle_lock = asyncio.Lock()

    def is_active(self) -> bool:
        """True while a session loop is running."""
        return self._active

    def monitored_addresses(self) -> list[str]:
        session = self._session
        return list(session.monitored_hosts) if session else []

    def status_of(self, address: str) -> Optional[bool]:
        """Last known online state, or None if the address is not monitored."""
        session = self._session
        return session.monitored_status.get(address) if session else None

    @property
    def cycles_completed(self) -> int:
        session = self._session
        return session.cycles if session else 0

    async def start(
        self,
        hosts: Iterable[Union[Host, str]],
        search_hidden_hosts: bool = False,
        hidden_host_ports: Sequence[int] = (),
    ) -> None:
        """
        Begin monitoring ``hosts``, replacing any running session.

        Hosts may be Host records (their open ports are used as a fast
        path) or bare addresses. An empty host list stops any previous
        session and leaves the monitor stopped.

        Raises:
            NotInitializedError: if the shared state is not initialized
        """
        self.shared_state.require_initialized("start monitoring")

        async with self._lifecycle_lock:
            if self._session is not None:
                logger.debug("Monitoring already active, stopping existing session first")
                await self._retire_session()

            snapshot: dict[str, Host] = {}
            for item in hosts:
                host = item if isinstance(item, Host) else Host(address=item)
                snapshot[host.address] = host

            if not snapshot:
                logger.info("Monitoring requested with no hosts, monitor stays stopped")
                return

            self.status = MonitorState.STARTING
            hidden_ports = normalize_ports(hidden_host_ports)
            session = MonitorSession(
                monitored_hosts=snapshot,
                # Hosts came from a scan that found them alive
                monitored_status={address: True for address in snapshot},
                search_hidden_hosts=search_hidden_hosts,
                hidden_host_ports=hidden_ports,
                liveness=self._liveness_factory(search_hidden_hosts, hidden_ports),
            )

            async with self._lock:
                self._session = session
                self._active = True
            session.token.attach(asyncio.create_task(self._run_session(session)))
            self.status = MonitorState.ACTIVE
            logger.info(f"Monitoring started for {len(snapshot)} hosts")

    async def stop(self) -> None:
        """
        Stop the active session.

        Returns only after the session loop has exited; the monitored
        maps are then empty. A no-op when nothing is running.
        """
        async with self._lifecycle_lock:
            if self._session is None:
                logger.debug("Monitoring is not active, nothing to stop")
                return
            await self._retire_session()
            logger.info("Monitoring successfully stopped")

    async def remove(self, address: str) -> bool:
        """
        Drop one host from the active session.

        A cycle already in flight skips the host when it gets to it.
        """
        async with self._lock:
            session = self._session
            if session is None or address not in session.monitored_hosts:
                return False
            del session.monitored_hosts[address]
            session.monitored_status.pop(address, None)
        logger.info(f"Host {address} removed from monitoring")
        return True

    async def _retire_session(self) -> None:
        """Cancel, join and clear the current session."""
        async with self._lock:
            session = self._session
        if session is None:
            return

        self.status = MonitorState.STOPPING
        await session.token.cancel_and_join()

        async with self._lock:
            session.monitored_hosts.clear()
            session.monitored_status.clear()
            if self._session is session:
                self._session = None
            self._active = False
        self.status = MonitorState.STOPPED

    async def _run_session(self, session: MonitorSession) -> None:
        """Session loop: one cycle now, then one per interval tick."""
        loop = asyncio.get_running_loop()
        try:
            next_tick = loop.time() + self.interval
            await self.check_cycle(session)

            while True:
                delay = max(0.0, next_tick - loop.time())
                if await session.token.wait(timeout=delay):
                    logger.info("Monitoring loop stopping due to cancellation")
                    break
                next_tick += self.interval
                # Drop ticks missed during a slow cycle
                if next_tick <= loop.time():
                    next_tick = loop.time() + self.interval
                await self.check_cycle(session)
        except Exception as e:
            logger.error(f"Monitoring loop failed: {e}")
        finally:
            async with self._lock:
                if self._session is session:
                    self._active = False
            logger.debug("Monitoring loop fully finished")

    async def check_cycle(self, session: Optional[MonitorSession] = None) -> None:
        """Check every monitored host once and publish transitions."""
        async with self._lock:
            session = session or self._session
            if session is None:
                return
            snapshot = [
                (address, tuple(sorted(host.open_ports)))
                for address, host in session.monitored_hosts.items()
            ]

        if not snapshot:
            return

        logger.debug(f"Performing status checks for {len(snapshot)} hosts")
        pool = WorkerPool(self.max_concurrent_checks)
        for address, known_ports in snapshot:
            worker = None
            if not session.token.is_cancelled:
                worker = await pool.submit(
                    self._check_and_commit, session, address, known_ports, token=session.token
                )
            if worker is None:
                logger.debug("Status check cycle cancelled")
                break
        await pool.join()
        session.cycles += 1

    async def _check_and_commit(
        self,
        session: MonitorSession,
        address: str,
        known_ports: tuple[int, ...],
    ) -> None:
        is_online = await self._is_online(session, address, known_ports)

        async with self._lock:
            previous = session.monitored_status.get(address)
            if previous is None:
                # Removed from the session while being checked
                return
            if previous == is_online:
                return
            session.monitored_status[address] = is_online

        logger.info(f"Host {address} status changed: was {previous}, now {is_online}")
        self.sink.host_status_update(StatusChangeEvent(address=address, is_online=is_online))

    async def _is_online(
        self,
        session: MonitorSession,
        address: str,
        known_ports: tuple[int, ...],
    ) -> bool:
        """Known open ports first, then the session's liveness probe."""
        try:
            for port in known_ports:
                outcome = await self._knock(address, port, self.knock_timeout)
                if outcome.affirmative:
                    return True
            result = await session.liveness.check(address)
            return result.alive
        except Exception as e:
            logger.debug(f"Status check for {address} failed: {e}")
            return False
