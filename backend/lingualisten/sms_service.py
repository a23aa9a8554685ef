from __future__ import annotations
import logging
from typing import Optional

import httpx

from .errors import ExternalServiceError
from .report import Report
from .settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def render_sms(report: Report, topic_prompt: str) -> str:
	return (
		"LinguaListen - Reporte de Evaluación\n\n"
		f"Hola {report.user_name},\n\n"
		f"Tu puntuación: {report.score}/{report.total_questions} ({report.percent_score}%)\n"
		f"Tema: {topic_prompt}\n\n"
		"¡Gracias por practicar con LinguaListen! Visita nuestra aplicación para ver un reporte detallado."
	)


class SmsProvider:
	"""Twilio Messages API over plain REST."""

	name = "sms"

	def __init__(self, config: Optional[Settings] = None, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
		config = config or default_settings
		self.account_sid = config.twilio_account_sid
		self.auth_token = config.twilio_auth_token
		self.from_number = config.twilio_phone_number
		self.base_url = config.twilio_base_url
		self._client = httpx.AsyncClient(timeout=30, transport=transport)

	def is_available(self) -> bool:
		return bool(self.account_sid and self.auth_token and self.from_number)

	async def send(self, report: Report, topic_prompt: str, contact_info: str) -> None:
		if not self.is_available():
			raise ExternalServiceError("Twilio not configured: missing credentials or phone number")
		url = f"{self.base_url}/Accounts/{self.account_sid}/Messages.json"
		data = {"To": contact_info, "From": self.from_number, "Body": render_sms(report, topic_prompt)}
		try:
			r = await self._client.post(url, data=data, auth=(self.account_sid, self.auth_token))
			r.raise_for_status()
			sid = r.json().get("sid")
		except (httpx.HTTPError, ValueError) as err:
			raise ExternalServiceError(f"Error sending assessment SMS: {err}") from err
		logger.info("SMS sent with SID: %s", sid)

	async def aclose(self) -> None:
		await self._client.aclose()
