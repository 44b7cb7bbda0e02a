import asyncio
import logging
from typing import Optional, Protocol

from google.cloud import speech

from ..errors import StreamInitError, WriteError
from ..models.session import TranscriptEvent

# Browser MediaRecorder output: webm/opus at 24 kHz
AUDIO_ENCODING = speech.RecognitionConfig.AudioEncoding.WEBM_OPUS
SAMPLE_RATE_HERTZ = 24000


class StreamListener(Protocol):
    def on_transcript(self, stream: "GoogleRecognitionStream", event: TranscriptEvent) -> None: ...
    def on_error(self, stream: "GoogleRecognitionStream", exc: BaseException) -> None: ...
    def on_end(self, stream: "GoogleRecognitionStream") -> None: ...


def response_to_event(response) -> TranscriptEvent:
    """First alternative of every result is authoritative; results are joined line by line."""
    results = [r for r in response.results if r.alternatives]
    text = "\n".join(r.alternatives[0].transcript for r in results)
    return TranscriptEvent(text=text, is_final=any(r.is_final for r in results))


class GoogleRecognitionStream:
    """One live streaming-recognize call bound to a single language code.

    Audio written with `write` is queued and fed to the request iterator. A pump
    task reads responses and hands each one to the listener as a TranscriptEvent.
    Once `close` is called (or the call terminates) no further events are dispatched.
    """

    def __init__(self, client, language_code: str, listener: StreamListener):
        self.language_code = language_code
        self._client = client
        self._listener = listener
        self._audio: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._call = None
        self._closed = False
        self.logger = logging.getLogger("caretalk")

    @property
    def closed(self) -> bool:
        return self._closed

    def _streaming_config(self) -> speech.StreamingRecognitionConfig:
        return speech.StreamingRecognitionConfig(
            config=speech.RecognitionConfig(
                encoding=AUDIO_ENCODING,
                sample_rate_hertz=SAMPLE_RATE_HERTZ,
                language_code=self.language_code,
            ),
            interim_results=True,
        )

    async def _requests(self):
        yield speech.StreamingRecognizeRequest(streaming_config=self._streaming_config())
        while True:
            chunk = await self._audio.get()
            if chunk is None:
                return
            yield speech.StreamingRecognizeRequest(audio_content=chunk)

    async def start(self, timeout: float) -> None:
        self._call = await asyncio.wait_for(
            self._client.streaming_recognize(requests=self._requests()),
            timeout=timeout,
        )
        self._task = asyncio.create_task(self._pump(self._call))

    async def _pump(self, responses) -> None:
        try:
            async for response in responses:
                if self._closed:
                    return
                self._listener.on_transcript(self, response_to_event(response))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._closed:
                return
            self._closed = True
            self.logger.warning("asr.stream.error lang=%s err=%s", self.language_code, exc)
            self._listener.on_error(self, exc)
            return
        if not self._closed:
            self._closed = True
            self.logger.info("asr.stream.end lang=%s", self.language_code)
            self._listener.on_end(self)

    def write(self, chunk: bytes) -> None:
        if self._closed or self._task is None or self._task.done():
            raise WriteError("Recognition stream is not writable")
        self._audio.put_nowait(bytes(chunk))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._audio.put_nowait(None)
        if self._task is not None and not self._task.done():
            self._task.cancel()
        # Release the gRPC call now rather than on half-close or collection
        if self._call is not None:
            self._call.cancel()


class GoogleTranscriber:
    """Factory for streaming recognition sessions; one SpeechAsyncClient per process."""

    def __init__(self, client=None, open_timeout: float = 10.0):
        self._client = client
        self.open_timeout = open_timeout
        self.logger = logging.getLogger("caretalk")

    def _get_client(self):
        # The async client binds to the running loop, so it is created on first use.
        if self._client is None:
            self._client = speech.SpeechAsyncClient()
        return self._client

    async def open(self, language_code: str, listener: StreamListener) -> GoogleRecognitionStream:
        try:
            stream = GoogleRecognitionStream(self._get_client(), language_code, listener)
            await stream.start(self.open_timeout)
        except asyncio.TimeoutError as exc:
            raise StreamInitError(f"Recognition stream did not open within {self.open_timeout}s") from exc
        except Exception as exc:
            raise StreamInitError(f"Recognition stream failed to open: {exc}") from exc
        self.logger.info("asr.stream.open lang=%s", language_code)
        return stream
