"""
Single-slot toast channel.

Showing a toast replaces whatever is on screen. Each toast schedules its own
auto-dismiss; when the timer fires it only clears the slot if that same toast
is still the one showing.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Literal, Optional

ToastKind = Literal["success", "error"]

TOAST_DURATION = 4.0


@dataclass(eq=False)
class ToastMessage:
    message: str
    kind: ToastKind


class Toast:
    def __init__(self, duration: float = TOAST_DURATION, on_change: Optional[Callable[[Optional[ToastMessage]], None]] = None):
        self.duration = duration
        self.current: Optional[ToastMessage] = None
        self._on_change = on_change

    def _set(self, toast: Optional[ToastMessage]) -> None:
        self.current = toast
        if self._on_change:
            self._on_change(toast)

    def show(self, message: str, kind: ToastKind) -> ToastMessage:
        """Must be called with an event loop running."""
        toast = ToastMessage(message, kind)
        self._set(toast)
        asyncio.get_running_loop().call_later(self.duration, self._expire, toast)
        return toast

    def success(self, message: str) -> ToastMessage:
        return self.show(message, "success")

    def error(self, message: str) -> ToastMessage:
        return self.show(message, "error")

    def dismiss(self) -> None:
        if self.current is not None:
            self._set(None)

    def _expire(self, toast: ToastMessage) -> None:
        if self.current is toast:
            self._set(None)
