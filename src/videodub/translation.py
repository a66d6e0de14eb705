"""
Translation and language detection providers.
"""

import json
import logging
from abc import ABC, abstractmethod

from openai import OpenAI, OpenAIError

from .errors import ProviderError, ProviderNotConfigured
from .platforms import get_language_name
from .transport import HttpProvider

logger = logging.getLogger("videodub")


class Translator(ABC):
    """Translation capability: text in, translated text out."""

    name = "translator"

    @property
    @abstractmethod
    def configured(self) -> bool: ...

    @abstractmethod
    def translate(self, text: str, target_language: str, source_language: str | None = None) -> str:
        """Translate ``text``; raise ProviderError on any failure or empty result."""

    @abstractmethod
    def detect_language(self, text: str) -> tuple[str, float]:
        """Return ``(language_code, confidence)``; raise ProviderError on failure."""


class GoogleTranslator(HttpProvider, Translator):
    """Google Cloud Translation (v2 REST API)."""

    name = "google-translate"
    BASE_URL = "https://translation.googleapis.com/language/translate/v2"

    def translate(self, text: str, target_language: str, source_language: str | None = None) -> str:
        key = self.require_key()
        body = {"q": text, "target": target_language, "format": "text"}
        if source_language:
            body["source"] = source_language

        logger.info(
            "Translating %d characters (%s -> %s) with Google",
            len(text),
            source_language or "auto",
            target_language,
        )
        data = self.json(self.request("POST", self.BASE_URL, params={"key": key}, json=body), "Translation")
        try:
            translations = (data.get("data") or {}).get("translations") or [{}]
            translated = translations[0].get("translatedText")
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ProviderError(self.name, "Malformed translation payload") from e
        if not translated or not str(translated).strip():
            raise ProviderError(self.name, "No translation returned")
        return str(translated)

    def detect_language(self, text: str) -> tuple[str, float]:
        key = self.require_key()
        data = self.json(
            self.request("POST", f"{self.BASE_URL}/detect", params={"key": key}, json={"q": text}),
            "Language detection",
        )
        try:
            detections = (data.get("data") or {}).get("detections") or [[]]
            if not detections[0]:
                raise ProviderError(self.name, "No language detected")
            detection = detections[0][0]
            return str(detection["language"]), float(detection.get("confidence", 0.0))
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise ProviderError(self.name, "Malformed language detection payload") from e


class OpenAITranslator(Translator):
    """Translation with OpenAI chat models."""

    name = "openai-translate"

    SYSTEM_PROMPT = (
        "You are a professional translator specializing in video narration. "
        "Always provide accurate, natural translations."
    )

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = "gpt-4o-mini",
        timeout: float = 60.0,
        client: OpenAI | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.api_key)

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise ProviderNotConfigured(self.name, "OPENAI_API_KEY is not set")
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def _complete(self, prompt: str, *, max_tokens: int = 4000) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self.SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.1,  # Low temperature for consistent translation
                max_tokens=max_tokens,
            )
        except OpenAIError as e:
            raise ProviderError(self.name, f"request failed: {e}") from e
        content = response.choices[0].message.content if response.choices else None
        return (content or "").strip()

    def translate(self, text: str, target_language: str, source_language: str | None = None) -> str:
        target = get_language_name(target_language)
        if source_language:
            prompt = f"""Translate the following text from {get_language_name(source_language)} to {target}.
Maintain the original tone, style, and meaning. Keep technical terms accurate.
Return only the translated text without any explanations or additional text.

Text to translate:
{text}"""
        else:
            prompt = f"""Translate the following text to {target}.
Detect the source language automatically and translate while maintaining the original tone, style, and meaning.
Keep technical terms accurate. Return only the translated text without any explanations or additional text.

Text to translate:
{text}"""

        logger.info(f"Translating text (source: {source_language or 'auto'}) to {target} using {self.model}...")
        translated = self._complete(prompt)
        if not translated:
            raise ProviderError(self.name, "No translation returned")
        logger.info(f"Translation completed: {len(text)} -> {len(translated)} characters")
        return translated

    def detect_language(self, text: str) -> tuple[str, float]:
        prompt = (
            "Identify the language of the text below. Reply with JSON only, shaped as "
            '{"language": "<ISO 639-1 code>", "confidence": <0..1>}.\n\n'
            f"Text:\n{text[:2000]}"
        )
        content = self._complete(prompt, max_tokens=50)
        start, end = content.find("{"), content.rfind("}")
        try:
            data = json.loads(content[start : end + 1])
            return str(data["language"]).lower(), float(data.get("confidence", 0.0))
        except (ValueError, KeyError, TypeError) as e:
            raise ProviderError(self.name, "Model did not return a language code") from e
