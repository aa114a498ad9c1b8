from __future__ import annotations
from typing import Iterable, Optional, Union

from .schemas import GenerationRequest, normalize_terms


def is_restricted(request: GenerationRequest, restricted_topics: Optional[Union[str, Iterable[str]]]) -> bool:
	"""Return True when the topic, a keyword or an interest contains a restricted topic.

	Matching is case-insensitive substring containment. ``restricted_topics``
	may be a comma-separated string or any iterable of strings. An empty
	restriction list never restricts anything.
	"""
	if restricted_topics is not None and not isinstance(restricted_topics, (str, list, tuple, set)):
		restricted_topics = list(restricted_topics)
	restricted = [t.lower() for t in normalize_terms(restricted_topics)]
	if not restricted:
		return False
	candidates = [request.topic or ""]
	candidates.extend(normalize_terms(request.keywords))
	candidates.extend(normalize_terms(request.interests))
	for candidate in candidates:
		lowered = candidate.lower()
		if any(topic in lowered for topic in restricted):
			return True
	return False
