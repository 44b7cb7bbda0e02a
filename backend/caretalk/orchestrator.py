"""
Streaming session orchestrator.

Owns the recognition stream of every session and drives each recognized
utterance through translation and synthesis before delivery. Utterances of one
session are processed by a single worker reading a FIFO queue, so results reach
the client in the order the recognizer emitted them.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Set, Tuple

from .errors import StreamInitError, SynthesisError, TranslationError, WriteError
from .models.schemas import ErrorMessage
from .models.session import Session, TranscriptEvent, UtteranceResult

logger = logging.getLogger("caretalk")

TRANSLATION_ERROR_TEXT = "Error in translation"


class Transport(Protocol):
    closed: bool

    async def send(self, message) -> bool: ...


class Transcriber(Protocol):
    async def open(self, language_code: str, listener): ...


class Translator(Protocol):
    def translate(self, text: str, target: str) -> str: ...


class Synthesizer(Protocol):
    async def synthesize(self, text: str, language_code: str) -> Optional[bytes]: ...


@dataclass
class _Utterance:
    transcript: str
    # Captured when the recognizer emitted the transcript
    target_language: str
    stream: object = None
    is_final: bool = True
    # Set when a newer event from the same stream arrives before this job starts
    superseded: bool = False


class _Pipeline:
    def __init__(self, transport: Transport):
        self.transport = transport
        self.queue: asyncio.Queue = asyncio.Queue()
        self.worker: Optional[asyncio.Task] = None
        # Latest interim job still waiting in the queue
        self.pending_interim: Optional[_Utterance] = None


class _StreamListener:
    """Routes recognizer callbacks back to the orchestrator with their session."""

    def __init__(self, orchestrator: "StreamingOrchestrator", session: Session):
        self.orchestrator = orchestrator
        self.session = session

    def on_transcript(self, stream, event: TranscriptEvent) -> None:
        self.orchestrator.on_transcript(self.session, stream, event)

    def on_error(self, stream, exc: BaseException) -> None:
        self.orchestrator.on_recognition_error(self.session, stream, exc)

    def on_end(self, stream) -> None:
        self.orchestrator.on_recognition_end(self.session, stream)


class StreamingOrchestrator:
    def __init__(
        self,
        transcriber: Transcriber,
        translator: Translator,
        synthesizer: Synthesizer,
        default_source: str = "en-US",
        default_target: str = "hi-IN",
        translate_timeout: float = 15.0,
        tts_timeout: float = 15.0,
        interim_results: bool = True,
    ):
        self.transcriber = transcriber
        self.translator = translator
        self.synthesizer = synthesizer
        self.default_source = default_source
        self.default_target = default_target
        self.translate_timeout = translate_timeout
        self.tts_timeout = tts_timeout
        self.interim_results = interim_results
        self._pipelines: Dict[str, _Pipeline] = {}
        # Workers of closed sessions still finishing an in-flight utterance
        self._draining: Set[asyncio.Task] = set()

    @property
    def active_sessions(self) -> int:
        return len(self._pipelines)

    # ----- session lifecycle -----

    def open_session(self, transport: Transport) -> Session:
        session = Session(self.default_source, self.default_target)
        pipeline = _Pipeline(transport)
        pipeline.worker = asyncio.create_task(self._run_pipeline(session, pipeline))
        self._pipelines[session.id] = pipeline
        logger.info("session.open sid=%s src=%s tgt=%s", session.id, session.source_language, session.target_language)
        return session

    def on_close(self, session: Session) -> None:
        """Tear down a session: end its stream now, let an in-flight utterance finish undelivered."""
        if session.closed:
            return
        session.closed = True
        self._end_stream(session)
        pipeline = self._pipelines.pop(session.id, None)
        if pipeline is None:
            return
        pipeline.queue.put_nowait(None)
        worker = pipeline.worker
        if worker is not None and not worker.done():
            self._draining.add(worker)
            worker.add_done_callback(self._draining.discard)
        logger.info("session.close sid=%s", session.id)

    async def aclose(self, timeout: float = 5.0) -> None:
        """Wait (bounded) for workers of closed sessions to finish."""
        if not self._draining:
            return
        _, pending = await asyncio.wait(set(self._draining), timeout=timeout)
        for task in pending:
            task.cancel()

    # ----- inbound messages -----

    def on_language_change(self, session: Session, source: str, target: str) -> None:
        session.source_language = source
        session.target_language = target
        # The recognizer is bound to its language at creation; the next frame opens a new one.
        self._end_stream(session)
        logger.info("session.languages sid=%s src=%s tgt=%s", session.id, source, target)

    async def on_audio_frame(self, session: Session, frame: bytes) -> None:
        if session.closed:
            return
        if session.recognition is None:
            try:
                stream = await self.transcriber.open(session.source_language, _StreamListener(self, session))
            except StreamInitError as e:
                logger.error("stream.open.failed sid=%s lang=%s err=%s", session.id, session.source_language, e)
                await self._send(session, ErrorMessage(error=str(e)))
                return
            if session.closed or session.recognition is not None:
                stream.close()
                return
            session.recognition = stream
            logger.info("stream.open sid=%s lang=%s", session.id, session.source_language)
        try:
            session.recognition.write(frame)
        except WriteError as e:
            logger.error("stream.write.failed sid=%s err=%s", session.id, e)
            await self._send(session, ErrorMessage(error=str(e)))

    # ----- recognizer callbacks -----

    def on_transcript(self, session: Session, stream, event: TranscriptEvent) -> None:
        if session.closed or session.recognition is not stream:
            return
        if not event.is_final and not self.interim_results:
            return
        if not event.text.strip():
            return
        pipeline = self._pipelines.get(session.id)
        if pipeline is None:
            return
        job = _Utterance(event.text, session.target_language, stream, event.is_final)
        pending = pipeline.pending_interim
        if pending is not None and pending.stream is stream:
            pending.superseded = True
        pipeline.pending_interim = None if event.is_final else job
        pipeline.queue.put_nowait(job)

    def on_recognition_error(self, session: Session, stream, exc: BaseException) -> None:
        logger.warning("stream.error sid=%s err=%s", session.id, exc)
        if session.recognition is stream:
            session.recognition = None

    def on_recognition_end(self, session: Session, stream) -> None:
        logger.info("stream.end sid=%s", session.id)
        if session.recognition is stream:
            session.recognition = None

    # ----- utterance pipeline -----

    async def run_utterance(self, transcript: str, target: str) -> Tuple[UtteranceResult, Optional[str]]:
        """Translate and synthesize one transcript.

        Returns the result to deliver plus an optional error text to report
        alongside it. Translation failure degrades to a placeholder and skips
        synthesis; synthesis failure leaves the audio empty.
        """
        try:
            translated = await self._translate(transcript, target)
        except TranslationError as e:
            logger.warning("utterance.translate.failed tgt=%s err=%s", target, e)
            return UtteranceResult(transcript, TRANSLATION_ERROR_TEXT, None), None

        try:
            audio = await self._synthesize(translated, target)
        except SynthesisError as e:
            logger.error("utterance.tts.failed tgt=%s err=%s", target, e)
            return UtteranceResult(transcript, translated, None), str(e)
        if audio is None:
            logger.warning("utterance.tts.no_content tgt=%s", target)
        return UtteranceResult(transcript, translated, audio), None

    async def _translate(self, text: str, target: str) -> str:
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, self.translator.translate, text, target),
                timeout=self.translate_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise TranslationError(f"Translation timed out after {self.translate_timeout}s") from exc

    async def _synthesize(self, text: str, target: str) -> Optional[bytes]:
        try:
            return await asyncio.wait_for(
                self.synthesizer.synthesize(text, target),
                timeout=self.tts_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise SynthesisError(f"Speech synthesis timed out after {self.tts_timeout}s") from exc

    async def _run_pipeline(self, session: Session, pipeline: _Pipeline) -> None:
        while True:
            job = await pipeline.queue.get()
            if job is None:
                return
            if job is pipeline.pending_interim:
                pipeline.pending_interim = None
            if session.closed:
                continue
            if job.superseded:
                logger.debug("utterance.superseded sid=%s", session.id)
                continue
            try:
                result, error = await self.run_utterance(job.transcript, job.target_language)
                if session.closed:
                    logger.info("utterance.discarded sid=%s reason=closed", session.id)
                    continue
                delivered = await pipeline.transport.send(result.to_message())
                if error:
                    await pipeline.transport.send(ErrorMessage(error=error))
                logger.info(
                    "utterance.done sid=%s tgt=%s chars=%d audio=%s delivered=%s",
                    session.id, job.target_language, len(result.translated),
                    result.synthesized_audio is not None, delivered,
                )
            except Exception as e:
                logger.exception("utterance.failed sid=%s err=%s", session.id, e)
                await pipeline.transport.send(ErrorMessage(error=f"Failed to process transcript: {e}"))

    # ----- helpers -----

    def _end_stream(self, session: Session) -> None:
        stream = session.recognition
        session.recognition = None
        if stream is not None:
            stream.close()

    async def _send(self, session: Session, message) -> bool:
        pipeline = self._pipelines.get(session.id)
        if pipeline is None:
            return False
        return await pipeline.transport.send(message)
