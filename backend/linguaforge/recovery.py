"""
Recovery of structured content from language-model text.

The model is asked for a bare JSON object but in practice may wrap it in a
markdown fence, stop mid-string when it runs out of tokens, or emit JSON that
does not parse. Recovery walks a fixed ladder and never raises:

1. parse the whole response as JSON
2. parse the interior of a ```json fenced block
3. pull ``title`` / ``content`` out of the raw text field by field
4. fall back to "<topic> - Generated Content" and the raw text itself

Exercises are only taken from a successfully parsed object; they are never
guessed from broken text.
"""

from __future__ import annotations
import json
import logging
import re
from typing import Any, Dict, List, Optional

from .schemas import Exercise, GeneratedContent

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)


def parse_json_response(text: Optional[str]) -> Optional[Dict[str, Any]]:
	"""Direct parse, then fenced-block parse. Returns None when neither yields an object."""
	if not text:
		return None
	try:
		data = json.loads(text)
	except ValueError:
		data = None
		match = _FENCE_RE.search(text)
		if match and match.group(1):
			try:
				data = json.loads(match.group(1))
			except ValueError:
				data = None
			else:
				logger.debug("LLM response recovered from fenced block")
	return data if isinstance(data, dict) else None


def unescape_json_string(value: str) -> str:
	# Backslashes first so an escaped quote is not unescaped twice
	if not value:
		return ""
	return (
		value.replace("\\\\", "\\")
		.replace('\\"', '"')
		.replace("\\n", "\n")
		.replace("\\r", "\r")
		.replace("\\t", "\t")
	)


def extract_field(text: Optional[str], field_name: str, next_field_name: Optional[str] = None) -> str:
	"""Pull one string field out of raw, possibly broken, JSON text.

	Tried in order: value bounded by the next known key, value closed at the
	very end of the text, and everything after the opening quote (a response
	truncated before the closing quote).
	"""
	if not text:
		return ""
	name = re.escape(field_name)
	patterns: List[str] = []
	if next_field_name:
		patterns.append(rf'"{name}"\s*:\s*"([\s\S]*?)"\s*,\s*"{re.escape(next_field_name)}"')
	patterns.append(rf'"{name}"\s*:\s*"([\s\S]*?)"\s*\Z')
	patterns.append(rf'"{name}"\s*:\s*"([\s\S]*)\Z')
	for pattern in patterns:
		match = re.search(pattern, text, re.IGNORECASE)
		if match and match.group(1):
			return unescape_json_string(match.group(1))
	return ""


def _text(value: Any) -> str:
	if value is None or isinstance(value, (dict, list)):
		return ""
	return str(value)


def normalize_exercises(exercises: Any) -> List[Exercise]:
	if not isinstance(exercises, list):
		return []
	out: List[Exercise] = []
	for raw in exercises:
		if not isinstance(raw, dict):
			continue
		options = raw.get("options")
		question = _text(raw.get("question"))
		correct = _text(raw.get("correctAnswer", raw.get("correct_answer")))
		option_list = [str(o) for o in options] if isinstance(options, list) else []
		if not question or len(option_list) < 2 or not correct:
			continue
		out.append(
			Exercise(
				question=question,
				options=option_list,
				correct_answer=correct,
				explanation=_text(raw.get("explanation")),
				focus_word=_text(raw.get("focusWord", raw.get("focus_word"))),
			)
		)
	return out


def recover(raw_text: Optional[str], expect_exercises: bool, *, topic: str = "") -> GeneratedContent:
	raw_text = raw_text or ""
	parsed = parse_json_response(raw_text)

	title = _text(parsed.get("title")) if parsed else ""
	body = _text(parsed.get("content")) if parsed else ""
	if not title:
		title = extract_field(raw_text, "title", "content")
	if not body:
		body = extract_field(raw_text, "content", "exercises")
		if body:
			logger.info("LLM response was not valid JSON; content recovered field by field")
	if not title:
		title = f"{topic} - Generated Content"
	if not body:
		logger.warning("Could not recover content field; falling back to raw response text")
		body = raw_text

	exercises: List[Exercise] = []
	if expect_exercises and parsed:
		exercises = normalize_exercises(parsed.get("exercises"))
	return GeneratedContent(title=title, body=body, exercises=exercises)
