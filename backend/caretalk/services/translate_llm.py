import logging
from typing import Any

import requests

from ..errors import TranslationError

PROMPT_TEMPLATE = (
    "Translate the following text into {target}. Keep all medical terms accurate; "
    "if a medical term is clearly mispronounced or misused, use the correct term. "
    "Reply strictly in the requested language with only the translation.\n\n"
    "Text: {text}"
)


class LLMTranslate:
    """Translator backed by an OpenAI-compatible chat-completions endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-3.5-turbo",
        api_url: str = "https://api.openai.com/v1/chat/completions",
        temperature: float = 1.0,
        max_tokens: int = 100,
        timeout: float = 15.0,
    ):
        if not api_key:
            raise ValueError("API key is required for LLM translation")
        self.api_key = api_key
        self.model = model or "gpt-3.5-turbo"
        self.api_url = api_url or "https://api.openai.com/v1/chat/completions"
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.logger = logging.getLogger("caretalk")

    def _parse_response(self, payload: Any) -> str:
        # Anything but {"choices": [{"message": {"content": str}}]} counts as no text
        if not isinstance(payload, dict):
            return ""
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message")
        if not isinstance(message, dict):
            return ""
        content = message.get("content")
        if isinstance(content, str):
            return content.strip()
        return ""

    def translate(self, text: str, target: str) -> str:
        if not text or not text.strip():
            return ""
        payload = {
            "model": self.model,
            "messages": [
                {"role": "user", "content": PROMPT_TEMPLATE.format(target=target, text=text)},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": 1,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            resp = requests.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.HTTPError as exc:
            self.logger.error("translate.llm.http_failed status=%s body=%s", exc.response.status_code, exc.response.text[:500])
            raise TranslationError(f"Translation request failed: {exc}") from exc
        except (requests.RequestException, ValueError) as exc:
            self.logger.error("translate.llm.failed err=%s", exc)
            raise TranslationError(f"Translation request failed: {exc}") from exc
        out = self._parse_response(data)
        if not out:
            self.logger.warning("translate.llm.empty_response payload=%s", str(data)[:200])
            raise TranslationError("Translation response contained no text")
        return out
