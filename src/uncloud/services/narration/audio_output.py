"""Audio output device used by the cloud speech backend."""

import logging
from typing import Optional, Protocol

import numpy as np

from .cancellation import CancellationSource

logger = logging.getLogger(__name__)


class AudioOutput(Protocol):
    """A device that plays decoded audio and can be silenced on demand."""

    async def play(
        self,
        samples: np.ndarray,
        sample_rate: int,
        token: CancellationSource,
    ) -> None:
        ...

    def stop(self) -> None:
        ...


def pcm16_to_float(data: bytes, volume: float = 1.0) -> np.ndarray:
    """Decode little-endian 16-bit mono PCM into float32 samples scaled by volume."""
    if len(data) % 2:
        logger.warning("Dropping 1 byte from end of PCM buffer to keep 16-bit alignment")
        data = data[:-1]
    samples = np.frombuffer(data, dtype="<i2").astype(np.float32) / 32768.0
    return np.clip(samples * volume, -1.0, 1.0)


class SoundDeviceOutput:
    """
    Plays audio through the default output device using sounddevice.

    ``play`` polls the stream until it finishes so the event loop stays free.
    The cancellation token gets ``stop`` as a callback, so cancelling the
    token stops the device before the canceller returns.
    """

    def __init__(self, device: Optional[int | str] = None, poll_interval: float = 0.05):
        self.device = device
        self.poll_interval = poll_interval
        self._playing = False

    async def play(
        self,
        samples: np.ndarray,
        sample_rate: int,
        token: CancellationSource,
    ) -> None:
        token.raise_if_cancelled()
        if samples.size == 0:
            return

        import sounddevice as sd

        sd.play(samples, sample_rate, device=self.device)
        self._playing = True
        remove = token.add_callback(self.stop)
        try:
            while self._playing and sd.get_stream().active:
                await token.sleep(self.poll_interval)
        finally:
            remove()
            self._playing = False

    def stop(self) -> None:
        if not self._playing:
            return
        import sounddevice as sd

        sd.stop()
        self._playing = False
        logger.debug("Audio output stopped")


__all__ = ["AudioOutput", "SoundDeviceOutput", "pcm16_to_float"]
