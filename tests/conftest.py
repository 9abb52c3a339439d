import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from main import app  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.models.base import Base  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
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
def client(session_factory, tmp_path, monkeypatch):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr("app.api.documents.UPLOAD_DIR", str(tmp_path))
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, email="owner@acme.test", company="Acme Builders", password="secret123"):
    res = client.post("/api/auth/register", json={
        "email": email, "password": password,
        "first_name": "Olive", "last_name": "Owner", "company_name": company,
    })
    assert res.status_code == 201, res.text
    client.cookies.clear()
    body = res.json()
    return {"Authorization": f"Bearer {body['token']}"}, body["user"]


@pytest.fixture
def register_company(client):
    def _register(email, company, password="secret123"):
        return register(client, email=email, company=company, password=password)
    return _register


@pytest.fixture
def admin(client):
    headers, _ = register(client)
    return headers


@pytest.fixture
def admin_user(client, admin):
    return client.get("/api/auth/me", headers=admin).json()


@pytest.fixture
def other_admin(client):
    headers, _ = register(client, email="boss@rival.test", company="Rival Homes")
    return headers


@pytest.fixture
def staff(client, admin):
    res = client.post("/api/users", headers=admin, json={
        "email": "sam@acme.test", "password": "staffpass1",
        "first_name": "Sam", "last_name": "Staff", "role": "STAFF",
    })
    assert res.status_code == 201, res.text
    login = client.post("/api/auth/login", json={"email": "sam@acme.test", "password": "staffpass1"})
    client.cookies.clear()
    return {"Authorization": f"Bearer {login.json()['token']}"}


@pytest.fixture
def project(client, admin):
    res = client.post("/api/projects", headers=admin, json={"title": "Maple Ave Addition", "value": 120000})
    assert res.status_code == 201, res.text
    return res.json()


@pytest.fixture
def vendor(client, admin):
    res = client.post("/api/vendors", headers=admin, json={
        "name": "Ridge Electric", "type": "SUBCONTRACTOR", "status": "VERIFIED",
        "email": "office@ridge.test",
    })
    assert res.status_code == 201, res.text
    return res.json()
