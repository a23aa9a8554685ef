from __future__ import annotations
from typing import Any, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool


DEFAULT_DATABASE_URL = "sqlite://"

Base = declarative_base()


def make_engine(database_url: Optional[str] = None) -> Engine:
	url = database_url or DEFAULT_DATABASE_URL
	kwargs: Dict[str, Any] = {}
	if url.startswith("sqlite"):
		kwargs["connect_args"] = {"check_same_thread": False}
		# An in-memory database only lives as long as its single connection
		if url in ("sqlite://", "sqlite:///:memory:"):
			kwargs["poolclass"] = StaticPool
	return create_engine(url, future=True, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
	return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True, expire_on_commit=False)
