import logging

import requests

from ..errors import TranslationError


def base_language(code: str) -> str:
    """'hi-IN' -> 'hi'; LibreTranslate only knows bare ISO 639 codes."""
    return (code or "").split("-")[0].lower()


class LibreTranslate:
    def __init__(self, base_url: str, api_key: str = "", timeout: float = 12.0):
        # Allow comma-separated list to try multiple instances
        # Example: "https://libretranslate.com,https://libretranslate.de"
        parts = [p.strip().rstrip('/') for p in (base_url or "").split(',') if p.strip()]
        # Ensure uniqueness while preserving order
        seen = set()
        self.base_urls = []
        for u in parts:
            if u not in seen:
                self.base_urls.append(u)
                seen.add(u)
        self.api_key = api_key
        self.timeout = timeout
        self.logger = logging.getLogger("caretalk")

    def translate(self, text: str, target: str, source: str = "auto") -> str:
        if not text or not text.strip():
            return ""
        payload = {
            "q": text,
            "source": base_language(source) if source != "auto" else "auto",
            "target": base_language(target),
            "format": "text"
        }
        if self.api_key:
            payload["api_key"] = self.api_key
        headers = {"Content-Type": "application/json"}
        last_err = None
        for base in self.base_urls:
            url = f"{base}/translate"
            try:
                resp = requests.post(url, json=payload, headers=headers, timeout=self.timeout)
                if resp.status_code == 429:
                    # Rate limited, try next base
                    self.logger.warning("translate.libre.rate_limited base=%s", base)
                    last_err = "rate limited"
                    continue
                resp.raise_for_status()
                data = resp.json()
                out = data.get("translatedText") if isinstance(data, dict) else None
                if isinstance(out, str) and out:
                    return out
                self.logger.warning("translate.libre.empty_response base=%s", base)
                last_err = "empty translate response"
            except (requests.RequestException, ValueError) as e:
                self.logger.warning("translate.libre.failed base=%s err=%s", base, e)
                last_err = e
        raise TranslationError(f"LibreTranslate failed on all hosts: {last_err}")
