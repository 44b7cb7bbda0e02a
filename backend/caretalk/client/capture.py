"""
Command-line capture client.

Plays the browser's part against a running relay: sends the language pair,
streams a WAV recording as 300 ms WebM/Opus chunks, stops on sustained
silence, and prints (optionally saves) the translated results.

    python -m caretalk.client.capture speech.wav --source en-US --target hi-IN
"""

import argparse
import asyncio
import base64
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import websockets

from ..utils.audio import WebmOpusEncoder, read_wav_chunks, wav_sample_rate
from .silence import SilenceDetector

logger = logging.getLogger("caretalk.capture")


def control_frame(source: str, target: str) -> str:
    return json.dumps({"type": "config", "sourceLanguage": source, "targetLanguage": target})


def handle_message(raw: str, out_dir: Optional[Path] = None) -> Dict[str, Any]:
    """Decode one server frame; save synthesized audio when an output dir is given."""
    msg = json.loads(raw)
    if "error" in msg:
        logger.error("server.error %s", msg["error"])
        return msg
    logger.info("result original=%r translated=%r audio=%s",
                msg.get("original"), msg.get("translated"), bool(msg.get("synthesizedAudioBase64")))
    audio_b64 = msg.get("synthesizedAudioBase64")
    if audio_b64 and out_dir is not None:
        out_dir.mkdir(parents=True, exist_ok=True)
        out_path = out_dir / f"tts_{int(time.time() * 1000)}.mp3"
        out_path.write_bytes(base64.b64decode(audio_b64))
        msg["saved_to"] = str(out_path)
    return msg


async def _forward_encoded(encoder: WebmOpusEncoder, ws) -> int:
    sent = 0
    while True:
        data = await encoder.read()
        if not data:
            return sent
        await ws.send(data)
        sent += 1


async def _collect(ws, results: List[Dict[str, Any]], out_dir: Optional[Path]) -> None:
    try:
        async for raw in ws:
            if isinstance(raw, str):
                results.append(handle_message(raw, out_dir))
    except websockets.ConnectionClosed:
        pass


async def stream_file(
    url: str,
    wav_path: str,
    source: str,
    target: str,
    chunk_ms: int = 300,
    silence_threshold: float = 0.01,
    silence_ms: int = 2000,
    realtime: bool = True,
    linger_s: float = 5.0,
    out_dir: Optional[Path] = None,
) -> List[Dict[str, Any]]:
    results: List[Dict[str, Any]] = []
    detector = SilenceDetector(threshold=silence_threshold, hold_ms=silence_ms)
    encoder = WebmOpusEncoder(wav_sample_rate(wav_path))

    async with websockets.connect(url) as ws:
        await ws.send(control_frame(source, target))
        receiver = asyncio.create_task(_collect(ws, results, out_dir))
        await encoder.start()
        sender = asyncio.create_task(_forward_encoded(encoder, ws))
        try:
            for pcm in read_wav_chunks(wav_path, chunk_ms):
                await encoder.write(pcm)
                if detector.update(pcm, chunk_ms):
                    logger.info("capture.auto_stop silence_ms=%d", detector.silent_ms)
                    break
                if realtime:
                    await asyncio.sleep(chunk_ms / 1000)
            await encoder.finish()
            frames = await sender
            logger.info("capture.sent frames=%d", frames)
        finally:
            encoder.kill()
        # Let the last utterances come back before hanging up
        await asyncio.wait({receiver}, timeout=linger_s)
        receiver.cancel()
    return results


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Stream a WAV file to the speech translation relay.")
    parser.add_argument("wav", help="mono PCM16 WAV file")
    parser.add_argument("--url", default="ws://localhost:5000/ws")
    parser.add_argument("--source", default="en-US")
    parser.add_argument("--target", default="hi-IN")
    parser.add_argument("--chunk-ms", type=int, default=300)
    parser.add_argument("--silence-threshold", type=float, default=0.01)
    parser.add_argument("--silence-ms", type=int, default=2000)
    parser.add_argument("--no-realtime", action="store_true", help="send as fast as possible")
    parser.add_argument("--linger", type=float, default=5.0, help="seconds to wait for trailing results")
    parser.add_argument("--out-dir", type=Path, default=None, help="save synthesized MP3s here")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    results = asyncio.run(stream_file(
        args.url, args.wav, args.source, args.target,
        chunk_ms=args.chunk_ms,
        silence_threshold=args.silence_threshold,
        silence_ms=args.silence_ms,
        realtime=not args.no_realtime,
        linger_s=args.linger,
        out_dir=args.out_dir,
    ))
    errors = [r for r in results if "error" in r]
    logger.info("capture.done results=%d errors=%d", len(results) - len(errors), len(errors))
    return 1 if errors and len(errors) == len(results) else 0


if __name__ == "__main__":
    raise SystemExit(main())
