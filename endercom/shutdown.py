"""
Endercom SDK - Process-wide graceful shutdown.

A single coordinator owns the SIGINT/SIGTERM subscription and fans a signal
out to every running function or agent. It stops them and returns control to
the caller; whether the process exits afterwards is up to the application.
"""

import asyncio
import inspect
import logging
import signal
import weakref
from typing import Any, Optional

logger = logging.getLogger("endercom.shutdown")

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownCoordinator:
    """Fans termination signals out to registered stop targets.

    Targets are held weakly; a function that is never started or stopped
    does not outlive its last reference here.
    """

    def __init__(self, signals: tuple[int, ...] = SHUTDOWN_SIGNALS):
        self._signals = tuple(signals)
        self._targets: "weakref.WeakSet[Any]" = weakref.WeakSet()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_signals: list[int] = []
        self._previous_handlers: dict[int, Any] = {}
        self._task: Optional[asyncio.Task] = None
        self.shutdown_requested = False

    @property
    def targets(self) -> list[Any]:
        return list(self._targets)

    @property
    def installed(self) -> bool:
        return self._loop is not None

    def register(self, target: Any) -> None:
        """Add an object with a ``stop()`` method (sync or async)."""
        self._targets.add(target)

    def discard(self, target: Any) -> None:
        """Forget a target; signal handlers are removed with the last one."""
        self._targets.discard(target)
        if not self._targets:
            self.uninstall()

    def install(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Subscribe to termination signals on the given (or running) loop."""
        loop = loop or asyncio.get_running_loop()
        if self._loop is loop:
            return
        if self._loop is not None:
            self.uninstall()

        self._loop = loop
        self.shutdown_requested = False
        for sig in self._signals:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
                self._loop_signals.append(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                try:
                    self._previous_handlers[sig] = signal.signal(
                        sig,
                        lambda signum, frame: loop.call_soon_threadsafe(
                            self._on_signal, signum
                        ),
                    )
                except ValueError:
                    # signal.signal only works from the main thread
                    logger.debug("Cannot install handler for %s", sig)

    def uninstall(self) -> None:
        """Remove every handler installed by ``install``."""
        loop = self._loop
        if loop is not None and not loop.is_closed():
            for sig in self._loop_signals:
                loop.remove_signal_handler(sig)
        for sig, previous in self._previous_handlers.items():
            signal.signal(sig, previous)
        self._loop = None
        self._loop_signals = []
        self._previous_handlers = {}

    def _on_signal(self, signum: int) -> None:
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = str(signum)
        logger.info(f"Received {name}, shutting down...")
        if self._loop is not None:
            self._task = self._loop.create_task(self.shutdown())

    async def shutdown(self) -> None:
        """Stop every registered target concurrently."""
        self.shutdown_requested = True
        targets = list(self._targets)
        results = await asyncio.gather(
            *(self._stop(target) for target in targets), return_exceptions=True
        )
        for target, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.error(f"Failed to stop {target!r}: {result}")

    async def _stop(self, target: Any) -> None:
        result = target.stop()
        if inspect.isawaitable(result):
            await result


_coordinator: Optional[ShutdownCoordinator] = None


def get_shutdown_coordinator() -> ShutdownCoordinator:
    """Get the process-wide coordinator."""
    global _coordinator
    if _coordinator is None:
        _coordinator = ShutdownCoordinator()
    return _coordinator
