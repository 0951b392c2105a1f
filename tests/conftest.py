"""
Fixtures comunes: una BD SQLite en un archivo temporal por test, la app
con sus dependencias sustituidas y un servicio de IA sin proveedor.
"""

import os

# Antes de importar la app: nada de IA real ni BD del proyecto
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["DATABASE_URL"] = "sqlite:///./wellnest-test-unused.db"
for name in ("HF_TOKEN", "GEMINI_API_KEY", "AI_PROVIDER", "DEEPSEEK_MOCK"):
    os.environ.pop(name, None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from ai import AIService, AISettings
from database import get_db, get_session_factory, init_db, make_engine
from main import app, get_ai_service


class FakeProvider:
    """Proveedor de IA de mentira: devuelve respuestas fijas o lanza un error"""
    name = "fake"
    model = "fake-model"

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def complete(self, prompt, max_tokens, temperature, timeout):
        self.calls.append({"prompt": prompt, "max_tokens": max_tokens, "temperature": temperature})
        if self.error is not None:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0] if self.responses else ""


def make_ai_service(provider=None, **settings) -> AIService:
    return AIService(settings=AISettings(**settings), provider=provider, sleep=lambda _seconds: None)


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def ai_service():
    return make_ai_service()


@pytest.fixture
def client(session_factory, ai_service):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_ai_service] = lambda: ai_service

    # Sin "with": el lifespan (BD real, IA real) no se ejecuta
    yield TestClient(app)

    app.dependency_overrides.clear()


def register(client, email="ana@example.com", name="Ana", password="secreto123"):
    """Registra un usuario y devuelve (headers, user). Limpia la cookie para
    que cada petición use solo la cabecera que le pasemos."""
    response = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    client.cookies.clear()
    body = response.json()
    return {"Authorization": f"Bearer {body['token']}"}, body["user"]


@pytest.fixture
def auth_headers(client):
    headers, _user = register(client)
    return headers


@pytest.fixture
def other_headers(client):
    headers, _user = register(client, email="bruno@example.com", name="Bruno")
    return headers
