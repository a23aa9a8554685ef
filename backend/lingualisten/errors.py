"""Domain errors raised by the quiz core and its collaborators.

Routers never catch these; the handlers registered in ``main.create_app``
turn them into JSON responses.
"""


class LinguaListenError(Exception):
	status_code = 500

	def __init__(self, message: str) -> None:
		super().__init__(message)
		self.message = message


class ValidationError(LinguaListenError):
	"""Malformed or incomplete input, rejected before any state changes."""
	status_code = 400


class NotFoundError(LinguaListenError):
	status_code = 404


class ConflictError(LinguaListenError):
	status_code = 409


class ExternalServiceError(LinguaListenError):
	"""An LLM, TTS, email or SMS call failed."""
	status_code = 502


class RateLimitError(ExternalServiceError):
	status_code = 429


class ContentFormatError(ExternalServiceError):
	"""The LLM answered, but not with the JSON shape we asked for."""
