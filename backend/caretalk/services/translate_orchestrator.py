import logging
from typing import Optional

from ..errors import TranslationError
from .translate_libre import LibreTranslate
from .translate_llm import LLMTranslate


def _mask(s: Optional[str]) -> str:
    if not s:
        return ""
    if len(s) <= 5:
        return "***"
    return s[:3] + "***" + s[-2:]


class TranslatorOrchestrator:
    """Try multiple translators in order.

    Order:
      1) LLM chat-completions translator (primary)
      2) LibreTranslate, only when configured

    Raises TranslationError once every provider has failed.
    """

    def __init__(self, llm: LLMTranslate, libre: Optional[LibreTranslate] = None):
        self.logger = logging.getLogger("caretalk")
        self.llm = llm
        self.libre = libre
        self.logger.info(
            "translator.config model=%s api_key=%s libre_urls=%s",
            llm.model,
            _mask(llm.api_key),
            ",".join(libre.base_urls) if libre else "",
        )

    def translate(self, text: str, target: str) -> str:
        if not text or not text.strip():
            return ""
        try:
            return self.llm.translate(text, target)
        except TranslationError as e:
            if not self.libre:
                raise
            self.logger.warning("translator.llm.failed falling back err=%s", e)
        return self.libre.translate(text, target)
