import numpy as np


class SilenceDetector:
    """
    Auto-stop for the capture client.

    Tracks how long the input has stayed below `threshold` (RMS of the
    normalized PCM16 signal) and reports True once that lasts `hold_ms`.
    Any louder chunk resets the count.
    """

    def __init__(self, threshold: float = 0.01, hold_ms: int = 2000):
        self.threshold = threshold
        self.hold_ms = hold_ms
        self.silent_ms = 0

    @staticmethod
    def level(pcm: bytes) -> float:
        samples = np.frombuffer(pcm, dtype=np.int16)
        if len(samples) == 0:
            return 0.0
        audio = samples.astype(np.float32) / 32768.0
        return float(np.sqrt(np.mean(audio ** 2)))

    def update(self, pcm: bytes, chunk_ms: int) -> bool:
        if self.level(pcm) < self.threshold:
            self.silent_ms += chunk_ms
        else:
            self.silent_ms = 0
        return self.silent_ms >= self.hold_ms

    def reset(self) -> None:
        self.silent_ms = 0
