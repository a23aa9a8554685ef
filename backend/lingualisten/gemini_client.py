from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, Optional
from .errors import ExternalServiceError, RateLimitError
from .settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

AI_STUDIO_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
VERTEX_URL = (
	"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}"
	"/publishers/google/models/{model}:generateContent"
)


def _as_service_error(err: Exception, source: str = "Gemini") -> ExternalServiceError:
	if isinstance(err, ExternalServiceError):
		return err
	if isinstance(err, httpx.HTTPStatusError) and err.response.status_code == 429:
		return RateLimitError(f"{source} rate limit: {err}")
	return ExternalServiceError(f"{source} call failed: {err}")


class GeminiClient:
	"""Text generation over the Gemini REST API.

	When OPENROUTER_API_KEY is set, a failed Gemini call (or a missing Gemini
	key) is retried once through OpenRouter's chat completions endpoint.
	Every failure surfaces as ExternalServiceError; HTTP 429 as RateLimitError.
	"""

	def __init__(
		self,
		config: Optional[Settings] = None,
		*,
		api_key: Optional[str] = None,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		config = config or default_settings
		self.api_key = api_key or config.gemini_api_key
		self.model = model or config.gemini_model
		# Vertex takes the key as a header, AI Studio as a query parameter
		self._vertex = config.gemini_provider == "vertex"
		if self._vertex:
			self.base_url = base_url or VERTEX_URL.format(
				region=config.vertex_region,
				project=config.vertex_project or "placeholder-project",
				model=self.model,
			)
		else:
			self.base_url = base_url or AI_STUDIO_URL.format(model=self.model)
		self.openrouter_key = config.openrouter_api_key
		self.openrouter_url = config.openrouter_base_url
		self.openrouter_model = config.openrouter_model
		self._openrouter_headers = {
			"Content-Type": "application/json",
			"HTTP-Referer": config.openrouter_referer,
			"X-Title": config.openrouter_title,
		}
		self._client = httpx.AsyncClient(timeout=30, transport=transport)

	@property
	def configured(self) -> bool:
		return bool(self.api_key or self.openrouter_key)

	async def generate(self, prompt: str) -> str:
		if not self.configured:
			raise ExternalServiceError("GEMINI_API_KEY is not configured")
		if not self.api_key:
			return await self._openrouter(prompt)
		try:
			return await self._gemini(prompt)
		except ExternalServiceError as err:
			if not self.openrouter_key:
				raise
			logger.warning("Gemini call failed, falling back to OpenRouter: %s", err.message)
			return await self._openrouter(prompt)

	async def _gemini(self, prompt: str) -> str:
		params: Dict[str, str] = {}
		headers: Dict[str, str] = {}
		if self._vertex:
			headers["x-goog-api-key"] = self.api_key or ""
		else:
			params["key"] = self.api_key or ""
		payload: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPError as err:
			logger.warning("Gemini call failed: %s", err)
			raise _as_service_error(err) from err
		try:
			return r.json()["candidates"][0]["content"]["parts"][0]["text"]
		except (ValueError, KeyError, IndexError, TypeError) as err:
			raise ExternalServiceError(f"Unexpected Gemini response: {r.text[:200]}") from err

	async def _openrouter(self, prompt: str) -> str:
		headers = {**self._openrouter_headers, "Authorization": f"Bearer {self.openrouter_key}"}
		payload = {"model": self.openrouter_model, "messages": [{"role": "user", "content": prompt}]}
		try:
			r = await self._client.post(self.openrouter_url, headers=headers, json=payload)
			r.raise_for_status()
			return r.json()["choices"][0]["message"]["content"]
		except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as err:
			logger.warning("OpenRouter call failed: %s", err)
			raise _as_service_error(err, "OpenRouter") from err

	async def aclose(self) -> None:
		await self._client.aclose()
