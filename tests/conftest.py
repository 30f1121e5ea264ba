"""Shared fixtures: an in-memory SQLite database and a generated demo tenant."""
from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from typing import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from crm_demo.core.config import GeneratorSettings
from crm_demo.generator.chunked import DemoGenerator, JobProgress
from crm_demo.models import Base

from factories import TODAY, fixed_now, plan_config


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def session(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def generator_settings() -> GeneratorSettings:
    return GeneratorSettings(batch_size=50, max_execution_seconds=600)


@pytest.fixture()
def generator(session: Session, generator_settings: GeneratorSettings) -> DemoGenerator:
    return DemoGenerator(session, generator_settings, now=fixed_now, today=TODAY)


@pytest.fixture()
def generated_tenant(generator: DemoGenerator) -> JobProgress:
    """A completed monthly-plan job covering 2024-01..2024-03."""

    job = generator.create_job(plan_config(), seed="fixture-seed")
    return generator.run_to_completion(job.id)
