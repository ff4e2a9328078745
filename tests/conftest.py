import pytest
from fastapi.testclient import TestClient

from lifesync.auth import CurrentUser, create_access_token
from lifesync.entity_store import get_entity_store
from lifesync.gcp_clients import get_llm
from lifesync.main import app

from .fakes import InMemoryEntityStore, StubLLM

USER = CurrentUser(user_id="ana@example.com", email="ana@example.com", full_name="Ana Lopez")
ADMIN = CurrentUser(user_id="admin@example.com", email="admin@example.com", full_name="Admin", role="admin")


@pytest.fixture
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def llm() -> StubLLM:
    return StubLLM()


@pytest.fixture
def client(store, llm):
    app.dependency_overrides[get_entity_store] = lambda: store
    app.dependency_overrides[get_llm] = lambda: llm
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user() -> CurrentUser:
    return USER


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {create_access_token(USER)}"}


@pytest.fixture
def admin_headers() -> dict:
    return {"Authorization": f"Bearer {create_access_token(ADMIN)}"}
