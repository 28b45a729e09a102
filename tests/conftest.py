import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from ordermanager.database import get_session
from ordermanager.main import app
from ordermanager.models import User
from ordermanager.routers.auth import create_access_token, get_password_hash


@pytest.fixture(name="session")
def session_fixture():
    # One in-memory database per test, shared across threads
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def make_user(session, username="admin", password="secret", role="admin"):
    user = User(username=username, password_hash=get_password_hash(password), role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def auth_headers(user):
    token = create_access_token({"sub": user.username, "v": user.token_version})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(name="user")
def user_fixture(session):
    return make_user(session)


@pytest.fixture(name="auth_client")
def auth_client_fixture(client, user):
    client.headers.update(auth_headers(user))
    return client


def create_order(client, type="sale", items=None, **fields):
    payload = {
        "type": type,
        "items": items or [{"name": "MS Angle", "quantity": 10, "price": 100, "commission": 10}],
    }
    if type == "sale":
        payload["customer"] = fields.pop("customer", "Sharma Steels")
    else:
        payload["supplier"] = fields.pop("supplier", "Jindal Supply")
    payload.update(fields)

    response = client.post("/orders/", json=payload)
    assert response.status_code == 200, response.text
    return response.json()


def fail_commits(monkeypatch, session):
    """Make every commit on the shared session fail like a dropped connection."""

    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "commit", broken_commit)
