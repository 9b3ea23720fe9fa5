# src/timeblock/notify/alerts.py

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from collections.abc import Callable
from datetime import datetime
from typing import TextIO

from ..core.ports import TTSEngine

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _applescript_quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


class AlertNotifier:
    """
    NotificationSink that fans an alert out to every local channel:
    - chime (terminal bell)
    - speech via the TTS engine (extra bell when speech is unavailable)
    - a timestamped console line
    - a desktop notification (notify-send / osascript / plyer)

    Every channel is best-effort and independent; failures are logged and dropped.
    Nothing is delivered while `is_silent()` returns True.
    """

    def __init__(
        self,
        *,
        is_silent: Callable[[], bool] = lambda: False,
        tts: TTSEngine | None = None,
        emit: Callable[[str], None] | None = None,
        desktop: bool = True,
        bell_stream: TextIO | None = None,
    ) -> None:
        self._is_silent = is_silent
        self._tts = tts
        self._emit = emit
        self._desktop = desktop
        self._bell_stream = bell_stream

    def notify(self, title: str, body: str) -> None:
        try:
            if self._is_silent():
                logger.debug("Alert suppressed (silent): %s", title)
                return
        except Exception:
            logger.debug("is_silent check failed; delivering anyway.", exc_info=True)

        self.chime()
        self.say(body)
        self.show(title, body)
        if self._desktop:
            self.desktop(title, body)

    # ---- channels ----

    def chime(self) -> None:
        stream = self._bell_stream or sys.stdout
        try:
            stream.write("\a")
            stream.flush()
        except Exception:
            logger.debug("Bell failed.", exc_info=True)

    def say(self, text: str) -> None:
        tts = self._tts
        if tts is None or not getattr(tts, "enabled", False):
            self.chime()
            return
        try:
            tts.speak_sentence(text)
        except Exception:
            logger.debug("TTS speak_sentence failed.", exc_info=True)
            self.chime()

    def show(self, title: str, body: str) -> None:
        if self._emit is None:
            return
        try:
            self._emit(f"[{_ts_local()}] [ALERT] {title}: {body}")
        except Exception:
            logger.debug("Console alert emit failed.", exc_info=True)

    def desktop(self, title: str, body: str) -> None:
        try:
            if sys.platform.startswith("linux"):
                exe = shutil.which("notify-send")
                if exe:
                    subprocess.Popen(
                        [exe, "--app-name=timeblock", title, body],
                        stdout=subprocess.DEVNULL,
                        stderr=subprocess.DEVNULL,
                    )
            elif sys.platform == "darwin":
                script = f"display notification {_applescript_quote(body)} with title {_applescript_quote(title)}"
                subprocess.Popen(
                    ["osascript", "-e", script],
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
            elif sys.platform == "win32":
                from plyer import notification  # type: ignore

                notification.notify(title=title, message=body, app_name="timeblock", timeout=10)
        except Exception:
            logger.debug("Desktop notification failed.", exc_info=True)
