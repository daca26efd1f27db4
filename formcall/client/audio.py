"""
Contracts of the client's audio devices.

Audio capture and playback are provided by the host application. The call
session only needs a microphone it can start, stop and mute, and a speaker that
plays assistant audio and reports when playback has finished.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable

from formcall.events import EventEmitter

EVENT_CHUNK = "chunk"
EVENT_PLAYBACK_FINISHED = "playback_finished"


class Microphone(ABC):
    """Captures user audio and emits it in chunks."""

    def __init__(self):
        self.events = EventEmitter()

    def on_chunk(self, listener: Callable[[bytes], Any]) -> Callable[[], None]:
        return self.events.on(EVENT_CHUNK, listener)

    @abstractmethod
    def start(self) -> None:
        """
        Start capturing.

        Raises:
            MicAccessError: If the microphone cannot be opened
        """

    @abstractmethod
    def stop(self) -> None:
        """Stop capturing and release the device."""

    @abstractmethod
    def mute(self) -> None:
        pass

    @abstractmethod
    def unmute(self) -> None:
        pass


class Speaker(ABC):
    """Plays assistant audio and reports when playback has finished."""

    def __init__(self):
        self.events = EventEmitter()

    @property
    @abstractmethod
    def is_playing(self) -> bool:
        """Whether audio is currently being played."""

    @abstractmethod
    def play(self, chunk: bytes) -> None:
        """Queue a chunk of audio for playback."""

    @abstractmethod
    def stop(self) -> None:
        """Stop playback and drop queued audio."""

    def on_finished(self, listener: Callable[[], Any]) -> Callable[[], None]:
        """Subscribe to the playback-finished notification."""
        return self.events.on(EVENT_PLAYBACK_FINISHED, listener)

    def notify_finished(self) -> None:
        """Called by implementations when the playback queue has drained."""
        self.events.emit(EVENT_PLAYBACK_FINISHED)
