import asyncio
from io import BytesIO
from typing import Optional

from gtts import gTTS
from gtts.tts import gTTSError

from ..errors import SynthesisError


class GTTSService:
    def _render(self, text: str, lang: str) -> bytes:
        # gTTS takes bare language codes: 'hi-IN' -> 'hi'
        tts = gTTS(text=text, lang=lang.split("-")[0].lower())
        fp = BytesIO()
        tts.write_to_fp(fp)
        return fp.getvalue()

    async def synthesize(self, text: str, language_code: str) -> Optional[bytes]:
        if not text or not text.strip():
            return None
        loop = asyncio.get_running_loop()
        try:
            audio = await loop.run_in_executor(None, self._render, text, language_code)
        except (gTTSError, ValueError, AssertionError) as exc:
            raise SynthesisError(f"gTTS failed: {exc}") from exc
        return audio or None
