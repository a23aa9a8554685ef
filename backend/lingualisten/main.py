from contextlib import asynccontextmanager
from typing import Dict, Optional
import logging
import time

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .content import ContentGenerator, TextGenerator
from .email_service import EmailProvider
from .errors import ExternalServiceError, LinguaListenError
from .gemini_client import GeminiClient
from .routers import health, practice, sessions
from .sessions import SessionRegistry
from .settings import Settings, settings
from .sharing import SharingDispatcher, SharingProvider
from .sms_service import SmsProvider
from .storage import Store
from .tts import AUDIO_URL_PREFIX, AudioSynthesizer

logger = logging.getLogger("lingualisten")


def configure_logging(level: str) -> None:
	logging.basicConfig(level=level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")


async def _aclose(resource: object) -> None:
	close = getattr(resource, "aclose", None)
	if close is not None:
		await close()


def create_app(
	config: Optional[Settings] = None,
	*,
	store: Optional[Store] = None,
	llm: Optional[TextGenerator] = None,
	synthesizer: Optional[AudioSynthesizer] = None,
	providers: Optional[Dict[str, SharingProvider]] = None,
	sessions_registry: Optional[SessionRegistry] = None,
) -> FastAPI:
	config = config or settings
	configure_logging(config.log_level)

	store = store or Store(config.database_url)
	llm = llm or GeminiClient(config)
	synthesizer = synthesizer or AudioSynthesizer(config)
	if providers is None:
		providers = {"email": EmailProvider(config), "sms": SmsProvider(config)}

	@asynccontextmanager
	async def lifespan(app: FastAPI):
		logger.info("LinguaListen starting (llm configured: %s, tts configured: %s)",
			bool(getattr(llm, "configured", True)), synthesizer.configured)
		yield
		await _aclose(llm)
		await _aclose(synthesizer)
		for provider in providers.values():
			await _aclose(provider)
		store.close()

	app = FastAPI(title="LinguaListen API", lifespan=lifespan)
	app.state.settings = config
	app.state.store = store
	app.state.generator = ContentGenerator(
		llm,
		question_count=config.question_count,
		retry_delay=config.generation_retry_delay_seconds,
	)
	app.state.synthesizer = synthesizer
	app.state.dispatcher = SharingDispatcher(store, providers)
	app.state.sessions = sessions_registry or SessionRegistry(
		unlock_seconds=config.listen_unlock_seconds,
		ttl_seconds=config.session_ttl_seconds,
	)

	app.include_router(health.router)
	app.include_router(practice.router)
	app.include_router(sessions.router)

	# Synthesized audio; the directory is created on first synthesis
	app.mount(AUDIO_URL_PREFIX, StaticFiles(directory=config.audio_dir, check_dir=False), name="audio")

	@app.get("/info")
	def info():
		return {
			"status": "ok",
			"gemini_configured": bool(config.gemini_api_key or config.openrouter_api_key),
			"tts_configured": bool(config.google_tts_api_key),
		}

	@app.middleware("http")
	async def log_api_requests(request: Request, call_next):
		start = time.perf_counter()
		response = await call_next(request)
		if request.url.path.startswith("/api"):
			duration = int((time.perf_counter() - start) * 1000)
			line = f"{request.method} {request.url.path} {response.status_code} in {duration}ms"
			if len(line) > 80:
				line = line[:79] + "…"
			logger.info(line)
		return response

	@app.exception_handler(LinguaListenError)
	async def handle_domain_error(request: Request, exc: LinguaListenError):
		if isinstance(exc, ExternalServiceError):
			logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
			return JSONResponse(
				status_code=exc.status_code,
				content={"detail": "External service failed. Please try again later.", "retryable": True},
			)
		return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

	@app.exception_handler(RequestValidationError)
	async def handle_invalid_request(request: Request, exc: RequestValidationError):
		return JSONResponse(
			status_code=400,
			content={"detail": "Invalid input format", "errors": jsonable_encoder(exc.errors())},
		)

	return app


app = create_app()
