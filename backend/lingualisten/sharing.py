from __future__ import annotations
import logging
from typing import Dict, Optional, Protocol

from pydantic import BaseModel

from .errors import ExternalServiceError, NotFoundError, ValidationError
from .report import Report, build_report
from .storage import Store

logger = logging.getLogger(__name__)

CONTACT_METHODS = ("email", "sms")


class SharingProvider(Protocol):
	name: str

	def is_available(self) -> bool: ...

	async def send(self, report: Report, topic_prompt: str, contact_info: str) -> None: ...


class ShareResult(BaseModel):
	success: bool
	message: str
	# "unavailable" or "provider_error" when success is False
	reason: Optional[str] = None


class SharingDispatcher:
	"""Routes a finished assessment to an email or SMS provider.

	Unavailable channels and provider failures come back as an unsuccessful
	ShareResult; nothing is retried and the assessment is left as it was.
	"""

	def __init__(self, store: Store, providers: Dict[str, SharingProvider]) -> None:
		self.store = store
		self.providers = providers

	def contact_methods(self) -> Dict[str, bool]:
		return {method: self._available(method) for method in CONTACT_METHODS}

	def _available(self, method: str) -> bool:
		provider = self.providers.get(method)
		return provider is not None and provider.is_available()

	async def share(self, assessment_id: int, method: str, contact_info: str) -> ShareResult:
		contact_info = (contact_info or "").strip()
		if not contact_info:
			raise ValidationError("Por favor ingresa tu información de contacto.")
		if "\r" in contact_info or "\n" in contact_info:
			raise ValidationError("La información de contacto no puede tener saltos de línea.")
		if method not in CONTACT_METHODS:
			raise ValidationError(f"contactMethod must be one of {list(CONTACT_METHODS)}")
		assessment = self.store.get_assessment(assessment_id)
		if assessment is None:
			raise NotFoundError("Assessment not found")
		if not self._available(method):
			return ShareResult(success=False, message=f"{method} is not available", reason="unavailable")
		topic = self.store.get_topic(assessment.topic_id)
		if topic is None:
			raise NotFoundError("Topic not found")
		questions = {q.id: q for q in self.store.get_questions_by_topic_id(topic.id)}
		report = build_report(assessment, questions)
		try:
			await self.providers[method].send(report, topic.prompt, contact_info)
		except ExternalServiceError as err:
			logger.error("Error sharing assessment %s via %s: %s", assessment_id, method, err)
			return ShareResult(success=False, message=f"Failed to send results via {method}", reason="provider_error")
		self.store.record_share(assessment_id, method, contact_info)
		return ShareResult(success=True, message=f"Results sent via {method}")
