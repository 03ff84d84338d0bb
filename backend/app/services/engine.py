import logging
from collections import defaultdict, deque
from collections.abc import Callable
from typing import Protocol

from app.domain.models import EngineCommand

logger = logging.getLogger(__name__)

TIME_UPDATE = "timeupdate"
LOADED_METADATA = "loadedmetadata"
ENDED = "ended"


class MediaEngine(Protocol):
    """The decode/playback capability driven by the player."""

    def load(self, src: str | None) -> None: ...
    def play(self) -> None: ...
    def pause(self) -> None: ...
    def seek(self, seconds: float) -> None: ...
    def set_volume(self, volume: float) -> None: ...
    def subscribe(self, event: str, callback: Callable) -> None: ...


class EngineEvents:
    def __init__(self):
        self._listeners: dict[str, list[Callable]] = defaultdict(list)

    def subscribe(self, event: str, callback: Callable) -> None:
        self._listeners[event].append(callback)

    def emit(self, event: str, *args) -> None:
        listeners = self._listeners.get(event)
        if not listeners:
            logger.debug(f"No listener for engine event {event}")
            return
        for callback in listeners:
            callback(*args)


class QueuedEngine(EngineEvents):
    """
    Engine backed by the browser <audio> element.
    Commands are queued until the front end drains them; its media events are
    posted back and re-emitted here.
    """

    def __init__(self, max_pending: int = 256):
        super().__init__()
        self.pending: deque[EngineCommand] = deque(maxlen=max_pending)

    def load(self, src: str | None) -> None:
        if src is None:
            self.pending.append(EngineCommand(command="unload"))
        else:
            self.pending.append(EngineCommand(command="load", src=src))

    def play(self) -> None:
        self.pending.append(EngineCommand(command="play"))

    def pause(self) -> None:
        self.pending.append(EngineCommand(command="pause"))

    def seek(self, seconds: float) -> None:
        self.pending.append(EngineCommand(command="seek", value=seconds))

    def set_volume(self, volume: float) -> None:
        self.pending.append(EngineCommand(command="volume", value=volume))

    def drain(self) -> list[EngineCommand]:
        commands = list(self.pending)
        self.pending.clear()
        return commands
