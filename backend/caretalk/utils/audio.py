import asyncio
import logging
import os
import wave
from typing import Iterator, Optional

logger = logging.getLogger("caretalk")

# Continuous WebM/Opus stream, the same container the browser's MediaRecorder emits.
OPUS_SAMPLE_RATE = 24000


def read_wav_chunks(wav_path: str, chunk_ms: int = 300) -> Iterator[bytes]:
    """Yield consecutive PCM16 mono frames of `chunk_ms` from a WAV file."""
    with wave.open(wav_path, "rb") as wf:
        if wf.getnchannels() != 1 or wf.getsampwidth() != 2:
            raise ValueError("WAV must be mono PCM16")
        frames_per_chunk = max(1, int(wf.getframerate() * chunk_ms / 1000))
        while True:
            data = wf.readframes(frames_per_chunk)
            if len(data) == 0:
                break
            yield data


def wav_sample_rate(wav_path: str) -> int:
    with wave.open(wav_path, "rb") as wf:
        return wf.getframerate()


class WebmOpusEncoder:
    """Encode raw PCM16 mono into one WebM/Opus byte stream through ffmpeg.

    PCM goes in through `write`; encoded bytes come out through `read` as ffmpeg
    produces them. `finish` closes stdin so ffmpeg flushes the last cluster.
    """

    def __init__(self, input_rate: int, output_rate: int = OPUS_SAMPLE_RATE, ffmpeg_bin: Optional[str] = None):
        self.input_rate = input_rate
        self.output_rate = output_rate
        # Resolve ffmpeg
        self.ffmpeg_bin = ffmpeg_bin or os.getenv("FFMPEG_BIN", "ffmpeg")
        self._proc: Optional[asyncio.subprocess.Process] = None

    def command(self) -> list:
        return [
            self.ffmpeg_bin, "-hide_banner", "-loglevel", "error",
            "-f", "s16le", "-ar", str(self.input_rate), "-ac", "1", "-i", "pipe:0",
            "-c:a", "libopus", "-ar", str(self.output_rate), "-ac", "1",
            "-f", "webm", "-flush_packets", "1",
            "pipe:1",
        ]

    async def start(self) -> None:
        self._proc = await asyncio.create_subprocess_exec(
            *self.command(),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

    async def write(self, pcm: bytes) -> None:
        self._proc.stdin.write(pcm)
        await self._proc.stdin.drain()

    async def read(self, size: int = 4096) -> bytes:
        """Next encoded bytes; b'' once ffmpeg has exited."""
        return await self._proc.stdout.read(size)

    async def finish(self) -> int:
        if self._proc.stdin and not self._proc.stdin.is_closing():
            self._proc.stdin.close()
        stderr = await self._proc.stderr.read()
        code = await self._proc.wait()
        if code != 0:
            logger.error("ffmpeg failed: returncode=%d stderr=%s", code, stderr.decode(errors="replace")[:500])
            raise RuntimeError(f"FFmpeg encode failed (exit {code})")
        return code

    def kill(self) -> None:
        if self._proc and self._proc.returncode is None:
            self._proc.kill()
