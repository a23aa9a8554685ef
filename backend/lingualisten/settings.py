from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# OpenRouter fallback configuration (optional)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="x-ai/grok-4-fast:free", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="LinguaListen", validation_alias="OPENROUTER_TITLE")

	# Content generation
	question_count: int = Field(default=5, ge=1, validation_alias="QUESTION_COUNT")
	generation_retry_delay_seconds: float = Field(default=2.0, ge=0, validation_alias="GENERATION_RETRY_DELAY_SECONDS")

	# Text-to-speech (Google Cloud TTS REST); without a key the browser speech fallback is used
	google_tts_api_key: str | None = Field(default=None, validation_alias="GOOGLE_TTS_API_KEY")
	tts_base_url: str = Field(default="https://texttospeech.googleapis.com/v1/text:synthesize", validation_alias="TTS_BASE_URL")
	tts_language_code: str = Field(default="en-US", validation_alias="TTS_LANGUAGE_CODE")
	tts_voice_name: str = Field(default="en-US-Standard-C", validation_alias="TTS_VOICE_NAME")
	tts_speaking_rate: float = Field(default=0.85, validation_alias="TTS_SPEAKING_RATE")
	audio_dir: str = Field(default="./audio", validation_alias="AUDIO_DIR")

	# Listening step: seconds before "continue" unlocks when there is no server audio
	listen_unlock_seconds: float = Field(default=3.0, ge=0, validation_alias="LISTEN_UNLOCK_SECONDS")
	# Guided sessions untouched this long are purged
	session_ttl_seconds: float = Field(default=3600.0, gt=0, validation_alias="SESSION_TTL_SECONDS")

	# Email (SMTP)
	smtp_host: str | None = Field(default=None, validation_alias="SMTP_HOST")
	smtp_port: int = Field(default=587, validation_alias="SMTP_PORT")
	smtp_secure: bool = Field(default=False, validation_alias="SMTP_SECURE")
	smtp_user: str | None = Field(default=None, validation_alias="SMTP_USER")
	smtp_password: str | None = Field(default=None, validation_alias="SMTP_PASS")
	email_from: str = Field(default='"LinguaListen" <no-reply@lingualisten.com>', validation_alias="EMAIL_FROM")

	# SMS (Twilio)
	twilio_account_sid: str | None = Field(default=None, validation_alias="TWILIO_ACCOUNT_SID")
	twilio_auth_token: str | None = Field(default=None, validation_alias="TWILIO_AUTH_TOKEN")
	twilio_phone_number: str | None = Field(default=None, validation_alias="TWILIO_PHONE_NUMBER")
	twilio_base_url: str = Field(default="https://api.twilio.com/2010-04-01", validation_alias="TWILIO_BASE_URL")

	# Database; in-memory SQLite unless configured
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
