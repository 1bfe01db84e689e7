"""Server-side microphone capture for voice input."""

import io
import logging
import threading
from typing import List, Optional

import numpy as np
import soundfile as sf

from uncloud.errors import MicrophoneAccessError, RecordingError

logger = logging.getLogger(__name__)


def _load_sounddevice():
    """Import sounddevice; the import itself fails with OSError when PortAudio is missing."""
    import sounddevice

    return sounddevice


class AudioRecorder:
    """
    Records mono 16-bit audio from the default input device.

    ``start`` opens a sounddevice InputStream whose callback appends blocks
    on the PortAudio thread; ``stop`` closes it and returns WAV bytes.
    """

    def __init__(self, sample_rate: int = 16000, channels: int = 1, device: Optional[int | str] = None):
        self.sample_rate = sample_rate
        self.channels = channels
        self.device = device
        self._stream = None
        self._frames: List[np.ndarray] = []
        self._lock = threading.Lock()

    @property
    def recording(self) -> bool:
        return self._stream is not None

    def _callback(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug(f"Input stream status: {status}")
        with self._lock:
            self._frames.append(indata.copy())

    def start(self) -> None:
        if self._stream is not None:
            raise RecordingError("Already recording")

        self._frames = []
        try:
            sd = _load_sounddevice()
        except OSError as exc:
            logger.error(f"Could not load audio input library: {exc}")
            raise MicrophoneAccessError("Microphone access denied") from exc

        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                device=self.device,
                callback=self._callback,
            )
            stream.start()
        except (sd.PortAudioError, OSError) as exc:
            logger.error(f"Could not open microphone: {exc}")
            raise MicrophoneAccessError("Microphone access denied") from exc
        self._stream = stream
        logger.info(f"Recording started at {self.sample_rate} Hz")

    def _close(self) -> np.ndarray:
        stream, self._stream = self._stream, None
        if stream is None:
            raise RecordingError("Not recording")
        stream.stop()
        stream.close()
        with self._lock:
            frames, self._frames = self._frames, []
        if not frames:
            return np.zeros((0, self.channels), dtype=np.int16)
        return np.concatenate(frames)

    def stop(self) -> bytes:
        """Stop recording and return the capture as WAV bytes."""
        samples = self._close()
        buffer = io.BytesIO()
        sf.write(buffer, samples, self.sample_rate, format="WAV", subtype="PCM_16")
        logger.info(f"Recording stopped: {len(samples) / self.sample_rate:.1f}s captured")
        return buffer.getvalue()

    def cancel(self) -> None:
        """Discard the current recording, if any."""
        if self._stream is None:
            return
        self._close()
        logger.info("Recording cancelled")


__all__ = ["AudioRecorder"]
