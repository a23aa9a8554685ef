from __future__ import annotations
import base64
import hashlib
import logging
from pathlib import Path
from typing import Optional

import httpx

from .settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

AUDIO_URL_PREFIX = "/audio"


def audio_filename(text: str) -> str:
	# Same text, same file: synthesized audio is cached by content hash
	return f"{hashlib.md5(text.encode('utf-8')).hexdigest()}.mp3"


class AudioSynthesizer:
	"""Google Cloud Text-to-Speech over REST.

	``synthesize`` returns the public URL of the MP3, or None when no provider
	is configured or the call failed. None tells the client to read the text
	with the browser's speech synthesis instead.
	"""

	def __init__(self, config: Optional[Settings] = None, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
		config = config or default_settings
		self.api_key = config.google_tts_api_key
		self.base_url = config.tts_base_url
		self.language_code = config.tts_language_code
		self.voice_name = config.tts_voice_name
		self.speaking_rate = config.tts_speaking_rate
		self.audio_dir = Path(config.audio_dir)
		self._client = httpx.AsyncClient(timeout=30, transport=transport)

	@property
	def configured(self) -> bool:
		return bool(self.api_key)

	async def synthesize(self, text: str) -> Optional[str]:
		if not self.configured:
			logger.warning("No Google TTS API key found; client will use speech synthesis")
			return None
		filename = audio_filename(text)
		path = self.audio_dir / filename
		url = f"{AUDIO_URL_PREFIX}/{filename}"
		if path.exists():
			return url
		payload = {
			"input": {"text": text},
			"voice": {"languageCode": self.language_code, "name": self.voice_name},
			"audioConfig": {"audioEncoding": "MP3", "speakingRate": self.speaking_rate},
		}
		try:
			r = await self._client.post(self.base_url, params={"key": self.api_key}, json=payload)
			r.raise_for_status()
			audio = base64.b64decode(r.json()["audioContent"])
		except (httpx.HTTPError, ValueError, KeyError, TypeError) as err:
			logger.error("Error generating TTS with Google API: %s", err)
			return None
		self.audio_dir.mkdir(parents=True, exist_ok=True)
		path.write_bytes(audio)
		logger.info("Synthesized %d bytes of audio to %s", len(audio), path)
		return url

	async def aclose(self) -> None:
		await self._client.aclose()
