import threading
from typing import Callable

from loguru import logger

AUTOSAVE_INTERVAL = 30.0


class AutosaveTask:
    """Runs ``save`` once on start and then every ``interval`` seconds until stopped.

    A failing save is logged and skipped; the next tick retries.
    A task can be started once. The session manager creates a new one each
    time a session becomes active.
    """

    def __init__(self, save: Callable[[], None], interval: float = AUTOSAVE_INTERVAL) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.save = save
        self.interval = interval
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="repstack-autosave", daemon=True
        )

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self._stopped.is_set()

    def start(self) -> None:
        self.tick()
        self._thread.start()

    def tick(self) -> None:
        try:
            self.save()
        except Exception as e:
            logger.warning(f"Autosave failed: {e!r}")

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            self.tick()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop ticking and wait for an in-flight save to finish."""
        self._stopped.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout)
