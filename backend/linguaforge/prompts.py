from __future__ import annotations
from typing import Dict

from .schemas import GenerationRequest, SafetySettings


SYSTEM_PROMPT = "You are an educational content generator. Output JSON only."

TRANSLATION_SYSTEM_PROMPT = (
	"You are a professional translator. Translate the given text accurately while preserving formatting and tone."
)

TYPE_INSTRUCTIONS: Dict[str, str] = {
	"Article": "Write a short informative article with 2-3 concise paragraphs.",
	"Story": "Write a short narrative story with a clear beginning, middle, and end.",
	"Dialogue": 'Write a dialogue between two people with at least 6 lines. Format each line as "Name: sentence".',
	"Exercise": "Write a short instruction paragraph (2-3 sentences) that introduces the exercises below.",
}
GENERIC_INSTRUCTION = "Write clear, well-structured content."

JSON_CONTRACT = (
	"Return ONLY valid JSON with this exact shape:\n"
	"{\n"
	'  "title": "string",\n'
	'  "content": "string",\n'
	'  "exercises": [\n'
	"    {\n"
	'      "question": "string",\n'
	'      "options": ["string", "string", "string", "string"],\n'
	'      "correctAnswer": "string",\n'
	'      "explanation": "string",\n'
	'      "focusWord": "string or empty"\n'
	"    }\n"
	"  ]\n"
	"}\n"
)

WORD_COUNT_LINE = "Keep the content between 140 and 220 words.\n"


def compose(request: GenerationRequest, safety: SafetySettings | None = None) -> str:
	safety = safety or SafetySettings()
	content_type = (request.type or "").strip()
	include_exercises = content_type == "Exercise"

	prompt = f'Generate a {content_type or "piece of content"} about "{request.topic}".\n'
	prompt += TYPE_INSTRUCTIONS.get(content_type, GENERIC_INSTRUCTION) + "\n"
	if request.keywords:
		prompt += f"Primary keywords (must prioritize): {', '.join(request.keywords)}\n"
	if request.interests:
		prompt += f"Secondary interests (optional context): {', '.join(request.interests)}\n"
	if request.keywords and request.interests:
		prompt += "Keywords are higher priority than interests. If they conflict, follow keywords.\n"
	if safety.restricted_topics:
		prompt += f"Avoid these topics: {', '.join(safety.restricted_topics)}\n"
	if safety.mode == "strict":
		prompt += "Follow strict safety guidelines and avoid any sensitive content.\n"
	prompt += f"Level: {request.level}\n"
	if request.difficulty:
		prompt += f"Difficulty: {request.difficulty}\n"
	prompt += f"Language: {request.language}\n"
	prompt += JSON_CONTRACT
	prompt += WORD_COUNT_LINE
	if include_exercises:
		prompt += "Generate exactly 3 exercises related to the content and level.\n"
		prompt += "Keep each explanation to one sentence (max 20 words)."
	else:
		prompt += 'Set "exercises" to an empty array and do not include any questions.'
	return prompt


def translation_prompt(text: str, target_language: str) -> str:
	return (
		f"Translate the following text to {target_language}. Maintain the same formatting, structure, and tone. "
		"If there are dialogue lines (Name: text), preserve that format. Output ONLY the translated text, nothing else.\n\n"
		f"Text to translate:\n{text}"
	)
