"""
Poll Loop — NetMonitor
Drives the reachability prober and the connection diff engine on a fixed
interval until cancelled.

State machine:
  IDLE → RUNNING → SLEEPING → RUNNING → … → STOPPED

Ticks run one after another on a single asyncio task, so the diff engine's
seen set and the resolver cache are never touched concurrently. stop()
interrupts the sleep at once but lets a tick already in flight finish.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

import config

logger = logging.getLogger(__name__)


class MonitorState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


@dataclass
class TickResult:
    """Everything one poll cycle observed."""

    tick: int
    reachable: bool
    events: List = field(default_factory=list)
    network_changed: bool = False


class NetworkMonitor:
    """
    Owns one monitor's poll loop.

    Args:
        prober:   A ReachabilityProber (anything with ``async probe() -> bool``).
        engine:   A ConnectionDiffEngine (anything with ``tick() -> list``).
        sinks:    Callables invoked with every TickResult, in order.
        interval: Seconds to sleep between cycles.
        watcher:  Optional InterfaceWatcher; a detected change ends the next
                  sleep early so reachability is re-probed right away.
    """

    def __init__(
        self,
        prober,
        engine,
        sinks: Iterable[Callable[[TickResult], None]] = (),
        interval: float = config.POLL_INTERVAL,
        watcher=None,
    ):
        self.prober = prober
        self.engine = engine
        self.sinks = list(sinks)
        self.interval = interval
        self.watcher = watcher
        self.state = MonitorState.IDLE
        self.ticks = 0
        self._stopping = False
        self._wakeup = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    def stop(self) -> None:
        """Request a graceful stop; the current sleep ends immediately."""
        self._stopping = True
        self._wakeup.set()

    def wake(self) -> None:
        """End the current (or next) sleep early without stopping."""
        self._wakeup.set()

    @property
    def stopping(self) -> bool:
        return self._stopping

    async def run_once(self) -> TickResult:
        """Run a single probe + diff cycle and deliver it to every sink."""
        self.ticks += 1
        reachable = await self._probe()
        events = self._diff()

        changed = False
        if self.watcher is not None:
            changed = self.watcher.check()
            if changed:
                self.wake()

        result = TickResult(tick=self.ticks, reachable=reachable, events=events, network_changed=changed)
        self._deliver(result)
        return result

    async def run(self) -> None:
        """Poll until stop() is called."""
        logger.info("Network monitor started (interval %.1fs).", self.interval)
        try:
            while not self._stopping:
                self._wakeup.clear()
                self.state = MonitorState.RUNNING
                await self.run_once()
                if self._stopping:
                    break
                self.state = MonitorState.SLEEPING
                await self._sleep()
        finally:
            self.state = MonitorState.STOPPED
            logger.info("Network monitor stopped.")

    def start(self) -> asyncio.Task:
        """Schedule run() on the running event loop and return its task."""
        if self._task is None:
            self._task = asyncio.ensure_future(self.run())
        return self._task

    async def _sleep(self) -> None:
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            pass

    async def _probe(self) -> bool:
        try:
            return await self.prober.probe()
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Reachability probe failed unexpectedly: %s", exc)
            return False

    def _diff(self) -> list:
        try:
            return self.engine.tick()
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Connection diff failed unexpectedly: %s", exc)
            return []

    def _deliver(self, result: TickResult) -> None:
        for sink in self.sinks:
            try:
                sink(result)
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("Tick sink %r raised: %s", sink, exc)
