from fastapi import Request

from .content import ContentGenerator
from .sessions import SessionRegistry
from .sharing import SharingDispatcher
from .storage import Store
from .tts import AudioSynthesizer


# Collaborators are built once in create_app() and live on app.state


def get_store(request: Request) -> Store:
	return request.app.state.store


def get_generator(request: Request) -> ContentGenerator:
	return request.app.state.generator


def get_synthesizer(request: Request) -> AudioSynthesizer:
	return request.app.state.synthesizer


def get_dispatcher(request: Request) -> SharingDispatcher:
	return request.app.state.dispatcher


def get_sessions(request: Request) -> SessionRegistry:
	return request.app.state.sessions
