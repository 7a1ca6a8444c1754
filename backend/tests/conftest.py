"""
Pytest fixtures shared by the unit and API tests
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from spark.db import Base, get_db
from spark.main import app
from spark.rate_limit import SlidingWindowRateLimiter
from spark.routers.auth import User, get_current_user
from spark.routers.projects import get_ai_rate_limiter, get_gemini_client
from spark.schemas import ProjectRecord


TEST_USER = "alice"


@pytest.fixture
def db_session():
	"""Fresh in-memory database per test"""
	engine = create_engine(
		"sqlite://",
		connect_args={"check_same_thread": False},
		poolclass=StaticPool,
		future=True,
	)
	Base.metadata.create_all(bind=engine)
	TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
	session = TestingSession()
	try:
		yield session
	finally:
		session.close()
		Base.metadata.drop_all(bind=engine)
		engine.dispose()


class FakeGemini:
	"""Stands in for GeminiClient; returns canned responses in order."""

	def __init__(self, responses: List[str]):
		self.responses = list(responses)
		self.prompts: List[str] = []

	async def generate(self, prompt: str, *, json_mode: bool = False) -> str:
		self.prompts.append(prompt)
		return self.responses.pop(0)


@pytest.fixture
def fake_gemini():
	return FakeGemini([])


@pytest.fixture
def ai_limiter():
	return SlidingWindowRateLimiter(max_requests=10, window_seconds=60)


@pytest.fixture
def anon_client(db_session):
	"""Client with the real authentication dependency"""
	def _get_db():
		yield db_session

	app.dependency_overrides[get_db] = _get_db
	yield TestClient(app)
	app.dependency_overrides.clear()


@pytest.fixture
def client(db_session, fake_gemini, ai_limiter):
	"""Client already signed in as TEST_USER"""
	def _get_db():
		yield db_session

	app.dependency_overrides[get_db] = _get_db
	app.dependency_overrides[get_current_user] = lambda: User(username=TEST_USER)
	app.dependency_overrides[get_gemini_client] = lambda: fake_gemini
	app.dependency_overrides[get_ai_rate_limiter] = lambda: ai_limiter
	yield TestClient(app)
	app.dependency_overrides.clear()


@pytest.fixture
def sample_step() -> Dict[str, Any]:
	return {
		"title": "Build the data model",
		"description": "Design the tables that store tasks and their owners for the todo app.",
		"estimatedTime": "2 hours",
		"learningFocus": "relational data modelling",
		"connectionToGoal": "Every later feature reads and writes these tables.",
		"hints": ["Sketch the entities first", "Think about which queries must be fast"],
		"reflectionPrompts": ["Which relationship was hardest to model?"],
	}


@pytest.fixture
def make_project():
	"""Factory for ProjectRecord with sensible defaults"""
	def _make(**overrides: Any) -> ProjectRecord:
		created = overrides.pop("created_at", datetime(2024, 1, 1, 9, 0))
		data = {
			"id": overrides.pop("id", "p1"),
			"name": "Project",
			"status": "active",
			"created_at": created,
			"updated_at": created + timedelta(days=3),
			"time_spent": 0,
			"technologies": [],
			"tags": [],
		}
		data.update(overrides)
		return ProjectRecord(**data)

	return _make


@pytest.fixture
def create_project(client, sample_step):
	"""POST a project through the API and return its JSON"""
	def _create(**overrides: Any) -> Dict[str, Any]:
		body = {
			"name": "Todo app",
			"description": "A small todo app",
			"difficulty": 5,
			"technologies": ["Python"],
			"steps": [sample_step],
		}
		body.update(overrides)
		response = client.post("/projects", json=body)
		assert response.status_code == 201, response.text
		return response.json()

	return _create
