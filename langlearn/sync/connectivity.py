"""
Connectivity observers.

The sync engine does not bind to any platform's online/offline signal.
It subscribes to a ConnectivityObserver and reacts to transitions:

- ManualConnectivity: state pushed in by the host application (or tests)
- HealthCheckConnectivityMonitor: polls an async reachability probe
  on the event loop (e.g. RemoteStoreClient.health_check)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from loguru import logger

ConnectivityCallback = Callable[[bool], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class ConnectivityObserver(Protocol):
    """Source of online/offline transitions."""

    @property
    def is_online(self) -> bool: ...

    def subscribe(self, callback: ConnectivityCallback) -> Unsubscribe: ...


class _ObservableConnectivity:
    """Subscriber bookkeeping shared by the concrete observers."""

    def __init__(self, online: bool = False):
        self._online = online
        self._subscribers: list[ConnectivityCallback] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, callback: ConnectivityCallback) -> Unsubscribe:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _update(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        logger.info(f"Connectivity changed: {'online' if online else 'offline'}")
        for callback in list(self._subscribers):
            try:
                callback(online)
            except Exception as e:  # subscribers are isolated from each other
                logger.error(f"Connectivity subscriber failed: {e}")


class ManualConnectivity(_ObservableConnectivity):
    """Connectivity state set explicitly by the caller."""

    def set_online(self, online: bool) -> None:
        self._update(online)


class HealthCheckConnectivityMonitor(_ObservableConnectivity):
    """
    Polls a reachability probe and notifies on transitions.

    A reachability check that raises is logged and counted as offline;
    the polling loop keeps running.
    """

    def __init__(
        self,
        probe: Callable[[], Awaitable[bool]],
        poll_interval: float = 15.0,
        online: bool = False,
    ):
        super().__init__(online=online)
        self._probe = probe
        self.poll_interval = poll_interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def check(self) -> bool:
        """Probe once and publish the result."""
        online = bool(await self._probe())
        self._update(online)
        return online

    def start(self) -> None:
        """Start polling on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.debug(f"Connectivity monitor started (every {self.poll_interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("Connectivity monitor stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self.check()
            except Exception as e:
                logger.error(f"Connectivity check failed: {e}")
                self._update(False)
            await asyncio.sleep(self.poll_interval)
