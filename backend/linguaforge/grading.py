from __future__ import annotations
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .schemas import Exercise, GradingResult, GradingSummary, SubmissionAnswer


def normalize_answer(value: Any) -> str:
	if value is None:
		return ""
	return str(value).strip().lower()


def _as_index(value: Any) -> Optional[int]:
	if isinstance(value, bool):
		return None
	if isinstance(value, int):
		return value
	if isinstance(value, float):
		return int(value) if value.is_integer() else None
	if isinstance(value, str):
		try:
			return int(value.strip())
		except ValueError:
			return None
	return None


def normalize_answers(answers: Any) -> List[SubmissionAnswer]:
	"""Accept either a bare list of strings or a list of {index, answer} pairs.

	Pairs whose index is not an integer (or is negative) are dropped.
	"""
	if not isinstance(answers, (list, tuple)) or not answers:
		return []
	if isinstance(answers[0], str):
		return [SubmissionAnswer(index=i, answer="" if a is None else str(a)) for i, a in enumerate(answers)]
	out: List[SubmissionAnswer] = []
	for item in answers:
		if isinstance(item, SubmissionAnswer):
			out.append(item)
			continue
		if not isinstance(item, dict):
			continue
		index = _as_index(item.get("index"))
		if index is None or index < 0:
			continue
		answer = item.get("answer")
		out.append(SubmissionAnswer(index=index, answer="" if answer is None else str(answer)))
	return out


def grade(exercises: Sequence[Exercise], answers: Sequence[SubmissionAnswer]) -> Tuple[List[GradingResult], GradingSummary]:
	answer_map: Dict[int, str] = {a.index: a.answer for a in answers}
	results: List[GradingResult] = []
	for index, exercise in enumerate(exercises):
		user_answer = answer_map.get(index) or ""
		results.append(
			GradingResult(
				index=index,
				question=exercise.question,
				user_answer=user_answer,
				correct=normalize_answer(user_answer) == normalize_answer(exercise.correct_answer),
				correct_answer=exercise.correct_answer,
				explanation=exercise.explanation,
				focus_word=exercise.focus_word or "",
			)
		)
	total = len(results)
	correct = sum(1 for r in results if r.correct)
	# Half-up, so 1 of 8 scores 13 rather than banker's 12
	score = int(math.floor(correct / total * 100 + 0.5)) if total else 0
	return results, GradingSummary(total=total, correct=correct, score=score)
