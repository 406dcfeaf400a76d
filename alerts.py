import io
import logging
import wave
from typing import Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100
BEEP_FREQUENCY = 880.0
BEEP_COUNT = 3
BEEP_SPACING = 0.6
BEEP_PEAK = 0.8
BEEP_ATTACK = 0.05
BEEP_RELEASE = 0.4
BEEP_LENGTH = 0.5
VIBRATION_PATTERN = (300, 300, 300, 300, 300)


def beep_envelope(sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Linear gain ramp 0 -> peak -> 0 over a single beep."""
    t = np.arange(int(BEEP_LENGTH * sample_rate)) / sample_rate
    return np.interp(
        t,
        [0.0, BEEP_ATTACK, BEEP_RELEASE, BEEP_LENGTH],
        [0.0, BEEP_PEAK, 0.0, 0.0],
    )


def synthesize_beeps(
    sample_rate: int = SAMPLE_RATE,
    frequency: float = BEEP_FREQUENCY,
    count: int = BEEP_COUNT,
    spacing: float = BEEP_SPACING,
) -> np.ndarray:
    """Return mono float32 samples for ``count`` sine beeps ``spacing`` apart."""
    if count <= 0:
        return np.zeros(0, dtype=np.float32)
    length = int(BEEP_LENGTH * sample_rate)
    total = int(round((count - 1) * spacing * sample_rate)) + length
    t = np.arange(length) / sample_rate
    tone = np.sin(2 * np.pi * frequency * t) * beep_envelope(sample_rate)
    out = np.zeros(total, dtype=np.float32)
    for i in range(count):
        start = int(round(i * spacing * sample_rate))
        segment = out[start : start + length]
        segment += tone[: segment.size].astype(np.float32)
    return out


def encode_wav(samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> bytes:
    """Encode float samples in [-1, 1] as 16-bit mono PCM WAV bytes."""
    pcm = (np.clip(samples, -1.0, 1.0) * 32767).astype("<i2")
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm.tobytes())
    return buf.getvalue()


class AudioChannel:
    """Plays synthesized samples on the host platform."""

    def play(self, samples: np.ndarray, sample_rate: int) -> None:
        raise NotImplementedError


class HapticChannel:
    """Drives the host vibration motor with an on/off pattern in ms."""

    def vibrate(self, pattern: Sequence[int]) -> None:
        raise NotImplementedError


class AlertSink:
    """Delivers the end-of-rest cue over two optional, independent channels."""

    def __init__(
        self,
        audible: Optional[AudioChannel] = None,
        haptic: Optional[HapticChannel] = None,
        frequency: float = BEEP_FREQUENCY,
        sample_rate: int = SAMPLE_RATE,
    ) -> None:
        self.audible = audible
        self.haptic = haptic
        self.frequency = frequency
        self.sample_rate = sample_rate

    def rest_finished(self) -> None:
        if self.haptic is not None:
            try:
                self.haptic.vibrate(VIBRATION_PATTERN)
            except Exception:
                logger.warning("Vibration unavailable, skipping", exc_info=True)
        if self.audible is not None:
            try:
                samples = synthesize_beeps(self.sample_rate, self.frequency)
                self.audible.play(samples, self.sample_rate)
            except Exception:
                logger.warning("Audio output unavailable, skipping", exc_info=True)
