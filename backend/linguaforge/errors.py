from __future__ import annotations


class LinguaError(Exception):
	"""Base error for the content and progress engine.

	``status_code`` is what the HTTP layer answers with; core modules never
	touch HTTP themselves.
	"""

	status_code: int = 500

	def __init__(self, message: str = "") -> None:
		super().__init__(message)
		self.message = message or self.__class__.__name__


class ValidationError(LinguaError):
	status_code = 400


class Unauthorized(LinguaError):
	status_code = 401


class Forbidden(Unauthorized):
	status_code = 403


class NotFound(LinguaError):
	status_code = 404


class GenerationError(LinguaError):
	status_code = 500


class TranslationError(LinguaError):
	status_code = 500


class InternalError(LinguaError):
	status_code = 500
