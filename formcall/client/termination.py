"""
Graceful end of a call.

The agent's end-of-call signal can arrive slightly before its last words have
been played. Stopping right away would clip them, so the controller waits a
fixed delay, then stops immediately if nothing is playing, or waits for the
speaker's playback-finished notification otherwise.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from formcall.client.audio import Speaker
from formcall.config.constants import END_CALL_DELAY, END_CALL_PLAYBACK_TIMEOUT, LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


class GracefulTerminationController:
    """
    Delays the stop of a call until in-flight audio has been played.

    Args:
        stop: Coroutine function that stops the call
        speaker: The speaker whose playback must not be clipped
        delay: Seconds to wait before checking playback
        playback_timeout: Upper bound in seconds on waiting for playback to
            finish, or None to wait for the notification indefinitely
    """

    def __init__(
        self,
        stop: Callable[[], Awaitable[None]],
        speaker: Optional[Speaker] = None,
        delay: float = END_CALL_DELAY,
        playback_timeout: Optional[float] = END_CALL_PLAYBACK_TIMEOUT,
    ):
        self.stop = stop
        self.speaker = speaker
        self.delay = delay
        self.playback_timeout = playback_timeout
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def handle_end_call(self) -> Optional[asyncio.Task]:
        """
        Start terminating the call.

        Returns:
            The termination task, or None if a termination is already pending
        """
        if self.pending:
            logger.debug("End of call already pending, ignoring signal")
            return None
        logger.info(f"End of call requested, stopping in {self.delay}s")
        self._task = asyncio.create_task(self._terminate())
        return self._task

    async def _terminate(self) -> None:
        await asyncio.sleep(self.delay)

        if self.speaker is None or not self.speaker.is_playing:
            await self.stop()
            return

        logger.info("Waiting for the assistant to finish speaking before stopping")
        finished = asyncio.Event()
        unsubscribe = self.speaker.on_finished(finished.set)
        try:
            if self.playback_timeout is None:
                await finished.wait()
            else:
                try:
                    await asyncio.wait_for(finished.wait(), timeout=self.playback_timeout)
                except asyncio.TimeoutError:
                    logger.warning(
                        f"Playback did not finish within {self.playback_timeout}s, stopping anyway"
                    )
        finally:
            unsubscribe()
        await self.stop()

    def cancel(self) -> None:
        """Abort a pending termination. Safe to call from the termination itself."""
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()
