import base64
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from .schemas import ResultMessage


@dataclass
class TranscriptEvent:
    text: str
    is_final: bool = False


@dataclass
class UtteranceResult:
    transcript: str
    translated: str
    synthesized_audio: Optional[bytes] = None

    def to_message(self) -> ResultMessage:
        audio_b64 = None
        if self.synthesized_audio:
            audio_b64 = base64.b64encode(self.synthesized_audio).decode("utf-8")
        return ResultMessage(
            original=self.transcript,
            translated=self.translated,
            synthesized_audio_base64=audio_b64,
        )


@dataclass
class Session:
    """Server-side state of one open client connection.

    `recognition` is owned exclusively by the session: it is created lazily on
    the first audio frame and cleared whenever the stream ends, errors out, or
    the language pair changes.
    """
    source_language: str
    target_language: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    recognition: Optional[Any] = None
    closed: bool = False
