"""Handles text translation requests against a chat-completion service."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from openai import OpenAI, OpenAIError

from .exceptions import MalformedResponseError
from .openai_backend import to_service_error

logger = logging.getLogger(__name__)

BATCH_SYSTEM_PROMPT = (
    "You are a professional subtitle translator. Translate from {source} to {target}. "
    "Keep meaning, tone, and honorific nuance. Do not add explanations."
)
BATCH_INSTRUCTION = (
    "Translate each item to {target}. Return strict JSON with "
    '{{"translations": string[]}} matching the input length and order.'
)
SINGLE_SYSTEM_PROMPT = (
    "You are a professional subtitle translator. Translate from {source} to {target}. "
    "Output only the translated text without quotes or explanations."
)

class Translator(ABC):
    """Abstract base class for translation services."""

    @abstractmethod
    def translate_batch(self, texts: List[str], source_lang: str, target_lang: str) -> List[str]:
        """
        Translates an ordered list of texts in one request.

        Args:
            texts: The source texts, in order.
            source_lang: Source language code (e.g., 'ja').
            target_lang: Target language code (e.g., 'zh-TW').

        Returns:
            The parsed list of translated strings. Its length is NOT checked
            here; callers validate it against `texts`.

        Raises:
            TransientServiceError: For rate limiting, server and connection errors.
            PermanentServiceError: For any other rejected request.
            MalformedResponseError: If the response is not a list of strings.
        """
        pass

    def translate_text(self, text: str, source_lang: str, target_lang: str) -> str:
        """Translates a single line. Defaults to a one-item batch request."""
        translations = self.translate_batch([text], source_lang, target_lang)
        if len(translations) != 1:
            raise MalformedResponseError(f"Expected 1 translation, got {len(translations)}")
        return translations[0]

def _strip_code_fence(content: str) -> str:
    trimmed = content.strip()
    if not trimmed.startswith("```"):
        return trimmed
    trimmed = trimmed[3:]
    if trimmed[:4].lower() == "json":
        trimmed = trimmed[4:]
    if trimmed.endswith("```"):
        trimmed = trimmed[:-3]
    return trimmed.strip()

def _first_json_value(text: str) -> Any:
    decoder = json.JSONDecoder()
    for idx, ch in enumerate(text):
        if ch not in "{[":
            continue
        try:
            value, _ = decoder.raw_decode(text[idx:])
        except json.JSONDecodeError:
            continue
        return value
    raise MalformedResponseError("No JSON value found in translation response.")

def parse_translations(content: Optional[str]) -> List[str]:
    """
    Parses a translation response into a list of strings.

    Accepts `{"translations": [...]}` or a bare JSON array, optionally wrapped
    in a code fence or surrounded by prose.

    Raises:
        MalformedResponseError: If no list of strings can be recovered.
    """
    if not content or not content.strip():
        raise MalformedResponseError("Translation response was empty.")
    candidate = _strip_code_fence(content)
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        value = _first_json_value(candidate)

    if isinstance(value, dict):
        value = value.get('translations')
    if not isinstance(value, list):
        raise MalformedResponseError("Translation JSON missing 'translations' array.")
    if not all(isinstance(item, str) for item in value):
        raise MalformedResponseError("Translation array contains non-string items.")
    return value

class OpenAITranslator(Translator):
    """Implements translation using OpenAI chat completions with JSON output."""

    def __init__(self, client: OpenAI, model_name: str = "gpt-4o-mini", temperature: Optional[float] = None):
        """
        Initializes the OpenAITranslator.

        Args:
            client: A configured OpenAI client.
            model_name: The chat model used for translation.
            temperature: Optional sampling temperature; the service default when None.
        """
        self.client = client
        self.model_name = model_name
        self.temperature = temperature
        logger.info(f"Initializing OpenAITranslator with model '{self.model_name}'")

    def _complete(self, messages: List[dict], context: str, json_mode: bool) -> str:
        kwargs = {'model': self.model_name, 'messages': messages}
        if json_mode:
            kwargs['response_format'] = {"type": "json_object"}
        if self.temperature is not None:
            kwargs['temperature'] = self.temperature
        try:
            response = self.client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            mapped = to_service_error(e, context)
            if mapped is None:
                raise MalformedResponseError(f"{context}: {e}") from e
            raise mapped from e
        try:
            return response.choices[0].message.content or ""
        except (AttributeError, IndexError) as e:
            raise MalformedResponseError(f"{context}: unexpected chat response structure") from e

    def translate_batch(self, texts: List[str], source_lang: str, target_lang: str) -> List[str]:
        logger.debug(f"Translating batch of {len(texts)} lines ({source_lang}->{target_lang})")
        user = json.dumps({
            "instruction": BATCH_INSTRUCTION.format(target=target_lang),
            "source_language": source_lang,
            "target_language": target_lang,
            "items": texts,
        }, ensure_ascii=False)
        messages = [
            {"role": "system", "content": BATCH_SYSTEM_PROMPT.format(source=source_lang, target=target_lang)},
            {"role": "user", "content": user},
        ]
        content = self._complete(messages, f"OpenAI translation ({len(texts)} lines)", json_mode=True)
        return parse_translations(content)

    def translate_text(self, text: str, source_lang: str, target_lang: str) -> str:
        logger.debug(f"Translating single line ({source_lang}->{target_lang}): '{text[:50]}'")
        messages = [
            {"role": "system", "content": SINGLE_SYSTEM_PROMPT.format(source=source_lang, target=target_lang)},
            {"role": "user", "content": text},
        ]
        content = self._complete(messages, "OpenAI single-line translation", json_mode=False).strip()
        cleaned = content.strip('"')
        if not cleaned:
            raise MalformedResponseError("Single-line translation was empty.")
        return cleaned
