from __future__ import annotations
import asyncio
import logging
import smtplib
from email.message import EmailMessage
from html import escape
from typing import Optional

from .errors import ExternalServiceError
from .report import Report
from .settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def render_subject(report: Report) -> str:
	return f"Tu Reporte de LinguaListen - {report.score}/{report.total_questions} Preguntas Correctas"


def render_text(report: Report, topic_prompt: str) -> str:
	lines = [
		f"Hola {report.user_name},",
		"",
		f"Aquí está tu reporte de evaluación para el tema: {topic_prompt}",
		f"Puntuación total: {report.score}/{report.total_questions} ({report.percent_score}%)",
		"",
	]
	for n, item in enumerate(report.items, start=1):
		mark = "✅" if item.is_correct else "❌"
		lines.append(f"{n}. {item.question}")
		lines.append(f"   {mark} Tu respuesta: {item.selected_option_text}")
		if not item.is_correct:
			lines.append(f"   Respuesta correcta: {item.correct_option_text}")
	lines += ["", "Sigue practicando para mejorar tu comprensión auditiva en inglés. ¡Puedes hacerlo!", "El equipo de LinguaListen"]
	return "\n".join(lines)


def render_html(report: Report, topic_prompt: str) -> str:
	answers = []
	for n, item in enumerate(report.items, start=1):
		color = "#10b981" if item.is_correct else "#ef4444"
		icon = "✅" if item.is_correct else "❌"
		correct = "" if item.is_correct else (
			f'<p style="color: #6b7280; margin-left: 28px;">Respuesta correcta: {escape(item.correct_option_text)}</p>'
		)
		answers.append(
			'<div style="margin-bottom: 15px; border-bottom: 1px solid #e5e7eb; padding-bottom: 15px;">'
			f'<p style="font-weight: 500;">{n}. {escape(item.question)}</p>'
			f'<p style="color: {color};">{icon} Tu respuesta: {escape(item.selected_option_text)}</p>'
			f"{correct}</div>"
		)
	return (
		"<!DOCTYPE html><html><body style=\"font-family: system-ui, sans-serif; color: #1f2937;\">"
		'<div style="max-width: 600px; margin: 0 auto; padding: 20px;">'
		'<h1 style="color: #0f766e;">LinguaListen</h1>'
		"<p>Reporte de Comprensión Auditiva en Inglés</p>"
		f"<p>Hola {escape(report.user_name)},</p>"
		f"<p>Aquí está tu reporte de evaluación para el tema: <strong>{escape(topic_prompt)}</strong></p>"
		"<h2>Resumen de Puntuación</h2>"
		f'<p style="font-size: 20px; font-weight: bold; color: #0f766e;">{report.score}/{report.total_questions} ({report.percent_score}%)</p>'
		"<h2>Detalle de Respuestas</h2>"
		f"{''.join(answers)}"
		"<p>Sigue practicando para mejorar tu comprensión auditiva en inglés. ¡Puedes hacerlo!</p>"
		"<p>El equipo de LinguaListen</p>"
		"</div></body></html>"
	)


class EmailProvider:
	name = "email"

	def __init__(self, config: Optional[Settings] = None) -> None:
		config = config or default_settings
		self.host = config.smtp_host
		self.port = config.smtp_port
		self.secure = config.smtp_secure
		self.user = config.smtp_user
		self.password = config.smtp_password
		self.sender = config.email_from

	def is_available(self) -> bool:
		return bool(self.host)

	def _deliver(self, message: EmailMessage) -> None:
		if self.secure:
			server: smtplib.SMTP = smtplib.SMTP_SSL(self.host, self.port, timeout=30)
		else:
			server = smtplib.SMTP(self.host, self.port, timeout=30)
		with server:
			if not self.secure:
				server.ehlo()
				if server.has_extn("starttls"):
					server.starttls()
					server.ehlo()
			if self.user:
				server.login(self.user, self.password or "")
			server.send_message(message)

	async def send(self, report: Report, topic_prompt: str, contact_info: str) -> None:
		if not self.is_available():
			raise ExternalServiceError("Email is not configured")
		try:
			message = EmailMessage()
			message["From"] = self.sender
			message["To"] = contact_info
			message["Subject"] = render_subject(report)
			message.set_content(render_text(report, topic_prompt))
			message.add_alternative(render_html(report, topic_prompt), subtype="html")
		except ValueError as err:
			raise ExternalServiceError(f"Cannot build assessment email: {err}") from err
		try:
			await asyncio.to_thread(self._deliver, message)
		except (smtplib.SMTPException, OSError) as err:
			raise ExternalServiceError(f"Error sending assessment email: {err}") from err
		logger.info("Email sent for assessment %s", report.assessment_id)
