from __future__ import annotations
import logging

from .errors import GenerationError, TranslationError, ValidationError
from .prompts import TRANSLATION_SYSTEM_PROMPT, translation_prompt

logger = logging.getLogger(__name__)


async def translate(client, text: str, target_language: str) -> str:
	if not text or not text.strip():
		raise ValidationError("Text to translate is required")
	if not target_language or not target_language.strip():
		raise ValidationError("Target language is required")
	try:
		translated = await client.complete(
			TRANSLATION_SYSTEM_PROMPT,
			translation_prompt(text, target_language.strip()),
			temperature=0.3,
			max_tokens=2000,
		)
	except GenerationError as err:
		logger.warning("Translation to %s failed: %s", target_language, err)
		raise TranslationError(f"Translation failed: {err.message}") from err
	translated = (translated or "").strip()
	if not translated:
		raise TranslationError("Translation service returned empty response")
	return translated
