"""
Minimal event subscription primitive.

Components that emit notifications (agents, sessions, speakers) expose them
through an EventEmitter. Subscribing returns an unsubscribe callable so that
listeners can be released together with the session that registered them.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Set

from formcall.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

Listener = Callable[..., Any]


class EventEmitter:
    """Registry of listeners keyed by event name."""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}
        self._tasks: Set[asyncio.Future] = set()

    def on(self, event: str, listener: Listener) -> Callable[[], None]:
        """
        Subscribe a listener to an event.

        Returns:
            A callable that removes the listener again
        """
        self._listeners.setdefault(event, []).append(listener)

        def unsubscribe() -> None:
            self.off(event, listener)

        return unsubscribe

    def off(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def clear(self) -> None:
        self._listeners.clear()

    def emit(self, event: str, *args: Any) -> None:
        """
        Call every listener of an event synchronously, in subscription order.

        Coroutine results are scheduled on the running loop and kept until they
        finish; their failures are logged.
        """
        for listener in list(self._listeners.get(event, [])):
            result = listener(*args)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Event listener failed: {error}", exc_info=error)

    @property
    def pending(self) -> int:
        """Number of scheduled listener coroutines that have not finished."""
        return len(self._tasks)

    async def emit_async(self, event: str, *args: Any) -> None:
        """Call every listener of an event, awaiting coroutine listeners in order."""
        for listener in list(self._listeners.get(event, [])):
            result = listener(*args)
            if inspect.isawaitable(result):
                await result
