# src/timeblock/tts/engine.py

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TTSConfig:
    """Runtime TTS config resolved from settings."""
    speaker_wav: str | None
    xtts_speaker_name: str
    xtts_language: str

    @classmethod
    def from_settings(cls, settings: Any | None) -> TTSConfig:
        return cls(
            speaker_wav=(getattr(settings, "speaker_wav", "") or None),
            xtts_speaker_name=getattr(settings, "xtts_speaker_name", "Ana Florence") or "Ana Florence",
            xtts_language=getattr(settings, "xtts_language", "en") or "en",
        )


class TTSEngine:
    """
    Best-effort text-to-speech for spoken alerts.

    - Optional dependencies (torch + TTS + sounddevice): if they are missing the
      engine disables itself instead of crashing.
    - Synthesis and playback happen in a worker thread; speak_sentence() never blocks.
    - Speaker WAV is optional; if missing/unreadable, a named speaker is used.
    """

    def __init__(self, enabled: bool, settings: Any | None = None) -> None:
        self.enabled = bool(enabled)

        self._queue: queue.Queue[str | None] | None = None
        self._worker: threading.Thread | None = None

        self._tts_model: Any = None
        self._sample_rate: int | None = None
        self._sd: Any = None  # sounddevice module (runtime import)
        self._stop_requested = False

        if not self.enabled:
            logger.info("TTS disabled.")
            return

        logger.info("TTS enabling: importing dependencies (torch/TTS/sounddevice)... this may take a while.")

        try:
            import sounddevice as sd  # type: ignore
            import torch  # type: ignore
            from TTS.api import TTS  # type: ignore
        except Exception as e:
            self.enabled = False
            logger.warning(
                "TTS is enabled, but dependencies are missing or failed to import. "
                "Install the 'tts' extra (torch + TTS + sounddevice). Error: %s",
                repr(e),
            )
            return

        self._sd = sd
        cfg = TTSConfig.from_settings(settings)

        try:
            device = "cuda" if getattr(torch, "cuda", None) and torch.cuda.is_available() else "cpu"
            logger.info("Initializing XTTS (device=%s). First run may download large model files.", device)
            self._tts_model = TTS("tts_models/multilingual/multi-dataset/xtts_v2").to(device)

            try:
                sr = int(self._tts_model.synthesizer.output_sample_rate)
            except Exception:
                sr = None
            self._sample_rate = sr or 24000
        except Exception as e:
            self.enabled = False
            logger.error("Failed to initialize XTTS model: %s", repr(e))
            return

        self._queue = queue.Queue()
        self._worker = threading.Thread(target=self._audio_worker, args=(cfg,), daemon=True)
        self._worker.start()

        logger.info("TTS ready (sample_rate=%s).", self._sample_rate)

    def _synthesize(self, text: str, cfg: TTSConfig) -> Any:
        wav_path = (cfg.speaker_wav or "").strip()
        if wav_path:
            p = Path(wav_path)
            if p.exists() and p.is_file():
                return self._tts_model.tts(text=text, language=cfg.xtts_language, speaker_wav=str(p))
            logger.warning("speaker_wav is set but file does not exist: %s. Using speaker name.", wav_path)
        return self._tts_model.tts(text=text, language=cfg.xtts_language, speaker=cfg.xtts_speaker_name)

    def _audio_worker(self, cfg: TTSConfig) -> None:
        logger.info("TTS worker thread started.")
        assert self._queue is not None

        while True:
            item = self._queue.get()
            try:
                if item is None:
                    logger.info("TTS worker received stop signal.")
                    return

                text = " ".join(str(item).split()).strip()
                if not text:
                    continue

                try:
                    audio = self._synthesize(text, cfg)
                except Exception as e:
                    logger.error("TTS synthesis failed: %s", repr(e))
                    continue

                try:
                    self._sd.play(audio, self._sample_rate)
                    self._sd.wait()
                except Exception as e:
                    logger.error("TTS playback failed: %s", repr(e))
            finally:
                self._queue.task_done()

    def speak_sentence(self, text: str) -> None:
        """Queue a sentence for playback (no-op if disabled)."""
        if not self.enabled or self._queue is None:
            return
        self._queue.put(text)

    def wait_all(self) -> None:
        """Block until all queued items are processed (no-op if disabled)."""
        if not self.enabled or self._queue is None:
            return
        self._queue.join()

    def shutdown(self) -> None:
        """Request a clean shutdown of the worker (no-op if disabled)."""
        if not self.enabled or self._queue is None or self._stop_requested:
            return
        self._stop_requested = True

        logger.info("Stopping TTS worker...")
        self._queue.put(None)
        self._queue.join()

        if self._worker is not None:
            self._worker.join(timeout=2.0)

        logger.info("TTS stopped.")
