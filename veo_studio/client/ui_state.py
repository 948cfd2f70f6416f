"""
Headless model of the page controls and the status line.

Only the active generation attempt writes to these; the rotator thread touches
nothing but the status text.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

LOADING_MESSAGES: List[str] = [
    "Sending to the server...",
    "Generating... this can take a few minutes.",
    "The model is working on your creation.",
    "Fetching results, please be patient.",
    "Finishing the video generation...",
    "Almost there...",
]
MESSAGE_INTERVAL_SECONDS = 4.0

CONTROL_NAMES = ("generate", "image", "prompt", "aspect_ratio", "number_of_videos", "duration")


@dataclass
class Control:
    name: str
    disabled: bool = False


class StatusLine:
    def __init__(self, on_change: Optional[Callable[[str, bool], None]] = None):
        self.text = ""
        self.is_error = False
        self._on_change = on_change
        self._lock = threading.Lock()

    def show(self, text: str) -> None:
        self._set(text, False)

    def show_error(self, text: str) -> None:
        self._set(text, True)

    def _set(self, text: str, is_error: bool) -> None:
        with self._lock:
            self.text = text
            self.is_error = is_error
        if self._on_change:
            self._on_change(text, is_error)


class UIState:
    def __init__(self, control_names: Iterable[str] = CONTROL_NAMES, status: Optional[StatusLine] = None):
        self.controls: Dict[str, Control] = {name: Control(name) for name in control_names}
        self.status = status or StatusLine()

    @property
    def locked(self) -> bool:
        return all(control.disabled for control in self.controls.values())

    def lock(self) -> None:
        for control in self.controls.values():
            control.disabled = True

    def unlock(self) -> None:
        for control in self.controls.values():
            control.disabled = False


class StatusRotator:
    """Cycles through ``messages`` on ``status``, wrapping after the last one."""

    def __init__(
        self,
        status: StatusLine,
        messages: Sequence[str] = LOADING_MESSAGES,
        interval: float = MESSAGE_INTERVAL_SECONDS,
    ):
        if not messages:
            raise ValueError("StatusRotator needs at least one message")
        self.status = status
        self.messages = list(messages)
        self.interval = interval
        self.index = 0
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self.index = 0
        self._stopped.clear()
        self.status.show(self.messages[0])
        self._thread = threading.Thread(target=self._run, name="status-rotator", daemon=True)
        self._thread.start()

    def tick(self) -> str:
        self.index = (self.index + 1) % len(self.messages)
        message = self.messages[self.index]
        self.status.show(message)
        return message

    def stop(self) -> None:
        self._stopped.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        self._thread = None

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            self.tick()
