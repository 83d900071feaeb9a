"""System idle and lock-screen monitoring."""

from __future__ import annotations

import ctypes
import logging
import threading
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

DESKTOP_SWITCHDESKTOP = 0x0100


class IdleSource(Protocol):
    def seconds_since_input(self) -> float: ...

    def is_locked(self) -> bool: ...


class WindowsIdleDetector:
    """Detects idle and lock state using Win32 APIs."""

    def __init__(self) -> None:
        from ctypes import wintypes

        class LASTINPUTINFO(ctypes.Structure):
            _fields_ = [("cbSize", wintypes.UINT), ("dwTime", wintypes.DWORD)]

        self._info_type = LASTINPUTINFO
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        self._kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
        self._kernel32.GetTickCount64.restype = ctypes.c_ulonglong

    def seconds_since_input(self) -> float:
        last_input = self._info_type()
        last_input.cbSize = ctypes.sizeof(last_input)
        if not self._user32.GetLastInputInfo(ctypes.byref(last_input)):
            raise ctypes.WinError()  # type: ignore[attr-defined]
        # dwTime wraps every ~49.7 days; compare in the same 32-bit space.
        elapsed_ms = (self._kernel32.GetTickCount64() & 0xFFFFFFFF) - last_input.dwTime
        return (elapsed_ms & 0xFFFFFFFF) / 1000.0

    def is_locked(self) -> bool:
        desktop = self._user32.OpenInputDesktop(0, False, DESKTOP_SWITCHDESKTOP)
        if not desktop:
            return True
        self._user32.CloseDesktop(desktop)
        return False


class IdleMonitor:
    """Polls an idle source and raises edge-triggered idle, lock and activity callbacks.

    ``on_idle_exceeded`` fires once per idle excursion; it is re-armed only after
    input activity is seen again. ``on_lock`` fires once per lock. ``on_active``
    fires when input returns after an idle excursion or when the screen unlocks.
    """

    def __init__(
        self,
        source: IdleSource,
        threshold_seconds: Callable[[], float],
        on_idle_exceeded: Callable[[float], None],
        on_lock: Callable[[], None],
        on_active: Callable[[], None],
        poll_seconds: float = 2.0,
    ) -> None:
        self._source = source
        self._threshold_seconds = threshold_seconds
        self._on_idle_exceeded = on_idle_exceeded
        self._on_lock = on_lock
        self._on_active = on_active
        self.poll_seconds = poll_seconds
        self._idle_raised = False
        self._locked = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="idle-monitor", daemon=True)
        self._thread.start()
        logger.info("Idle monitor polling every %ss.", self.poll_seconds)

    def stop(self) -> None:
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if thread and thread is not threading.current_thread():
            thread.join(timeout=self.poll_seconds * 2)

    def poll_once(self) -> None:
        try:
            idle_seconds = self._source.seconds_since_input()
        except Exception:
            logger.exception("Failed to query idle state; assuming not idle.")
            idle_seconds = 0.0
        try:
            locked = self._source.is_locked()
        except Exception:
            logger.exception("Failed to query lock state; assuming unlocked.")
            locked = False

        if locked and not self._locked:
            self._locked = True
            logger.info("Screen locked.")
            self._on_lock()
        elif not locked and self._locked:
            self._locked = False
            logger.info("Screen unlocked.")
            if idle_seconds < self._threshold_seconds():
                self._idle_raised = False
                self._on_active()
                return

        if idle_seconds >= self._threshold_seconds():
            if not self._idle_raised:
                self._idle_raised = True
                logger.info("Idle for %.0fs.", idle_seconds)
                self._on_idle_exceeded(idle_seconds)
        elif self._idle_raised:
            self._idle_raised = False
            self._on_active()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception:
                logger.exception("Idle poll failed; continuing.")
            self._stop_event.wait(self.poll_seconds)
