"""Shared fakes for the orchestrator, transport and app tests.

No network: the recognizer, translator and synthesizer are replaced by
in-process doubles that record how they were called.
"""

import asyncio
import time

import pytest

from caretalk.errors import StreamInitError, SynthesisError, TranslationError, WriteError
from caretalk.models.session import TranscriptEvent
from caretalk.orchestrator import StreamingOrchestrator


class FakeStream:
    def __init__(self, language_code, listener, on_write=None):
        self.language_code = language_code
        self.listener = listener
        self.on_write = on_write
        self.written = []
        self.closed = False

    def write(self, chunk):
        if self.closed:
            raise WriteError("Recognition stream is not writable")
        self.written.append(chunk)
        if self.on_write:
            self.on_write(self)

    def close(self):
        self.closed = True

    # Recognizer-side events
    def emit(self, text, is_final=True):
        self.listener.on_transcript(self, TranscriptEvent(text, is_final))

    def fail(self, exc):
        self.closed = True
        self.listener.on_error(self, exc)

    def end(self):
        self.closed = True
        self.listener.on_end(self)


class FakeTranscriber:
    def __init__(self, fail=False, on_write=None):
        self.fail = fail
        self.on_write = on_write
        self.streams = []

    async def open(self, language_code, listener):
        if self.fail:
            raise StreamInitError("Recognition stream failed to open: unavailable")
        stream = FakeStream(language_code, listener, self.on_write)
        self.streams.append(stream)
        return stream

    def live(self):
        return [s for s in self.streams if not s.closed]


class FakeTranslator:
    """Runs in the executor thread; `delays` maps text -> seconds."""

    def __init__(self, delays=None, fail_on=()):
        self.delays = delays or {}
        self.fail_on = set(fail_on)
        self.calls = []

    def translate(self, text, target):
        self.calls.append((text, target))
        time.sleep(self.delays.get(text, 0))
        if text in self.fail_on:
            raise TranslationError("upstream unavailable")
        return f"{text} [{target}]"


class FakeSynthesizer:
    def __init__(self, mode="ok"):
        self.mode = mode
        self.calls = []

    async def synthesize(self, text, language_code):
        self.calls.append((text, language_code))
        if self.mode == "error":
            raise SynthesisError("TTS request failed: quota")
        if self.mode == "empty":
            return None
        return b"mp3:" + text.encode("utf-8")


class FakeTransport:
    def __init__(self):
        self.closed = False
        self.messages = []

    async def send(self, message):
        if self.closed:
            return False
        self.messages.append(message.model_dump(by_alias=True))
        return True


async def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def transcriber():
    return FakeTranscriber()


@pytest.fixture
def translator():
    return FakeTranslator()


@pytest.fixture
def synthesizer():
    return FakeSynthesizer()


@pytest.fixture
def make_orchestrator(transcriber, translator, synthesizer):
    def _make(**kwargs):
        kwargs.setdefault("transcriber", transcriber)
        kwargs.setdefault("translator", translator)
        kwargs.setdefault("synthesizer", synthesizer)
        return StreamingOrchestrator(**kwargs)
    return _make
