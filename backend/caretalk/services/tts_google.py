import logging
from typing import Optional

from google.cloud import texttospeech

from ..errors import SynthesisError


class GoogleTTSService:
    """Google Cloud Text-to-Speech, neutral voice, MP3 output."""

    def __init__(self, client=None):
        self._client = client
        self.logger = logging.getLogger("caretalk")

    def _get_client(self):
        if self._client is None:
            self._client = texttospeech.TextToSpeechAsyncClient()
        return self._client

    async def synthesize(self, text: str, language_code: str) -> Optional[bytes]:
        """MP3 bytes, or None when there is nothing to say or no audio came back."""
        if not text or not text.strip():
            return None
        try:
            response = await self._get_client().synthesize_speech(
                input=texttospeech.SynthesisInput(text=text),
                voice=texttospeech.VoiceSelectionParams(
                    language_code=language_code,
                    ssml_gender=texttospeech.SsmlVoiceGender.NEUTRAL,
                ),
                audio_config=texttospeech.AudioConfig(
                    audio_encoding=texttospeech.AudioEncoding.MP3,
                ),
            )
        except Exception as exc:
            raise SynthesisError(f"TTS request failed: {exc}") from exc
        if not response.audio_content:
            self.logger.warning("tts.google.no_content lang=%s", language_code)
            return None
        return response.audio_content
