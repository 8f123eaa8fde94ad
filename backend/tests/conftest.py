"""Pytest configuration and shared fixtures"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from fieldsmart.config import Settings
from fieldsmart.database import Base, build_engine, build_session_factory
from fieldsmart.main import create_app

# Test database setup (SQLite in-memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PRIMARY_ADDRESS = {
    "street": "123 Main St",
    "city": "Springfield",
    "state": "IL",
    "zip": "62701",
}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url=TEST_DATABASE_URL,
        secret_key="test-secret-key",
        scheduler_enabled=False,
    )


@pytest.fixture
async def engine():
    engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def app(settings, session_factory):
    # ASGITransport does not run the lifespan, so wire the state by hand
    application = create_app(settings)
    application.state.session_factory = session_factory
    return application


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def register(client):
    """Register a tenant and return auth headers for its admin."""

    async def _register(company: str = "Acme Heating", email: str = "owner@acmeheating.com") -> dict:
        resp = await client.post("/api/auth/register", json={
            "company_name": company,
            "email": email,
            "password": "correct-horse-battery",
            "full_name": "Pat Owner",
        })
        assert resp.status_code == 201, resp.text
        login = await client.post("/api/auth/login", json={
            "email": email, "password": "correct-horse-battery",
        })
        assert login.status_code == 200, login.text
        return {"Authorization": f"Bearer {login.json()['data']['access_token']}"}

    return _register


@pytest.fixture
async def admin_headers(register) -> dict:
    return await register()


@pytest.fixture
def make_customer(client):
    async def _make_customer(headers: dict, primary: dict | None = PRIMARY_ADDRESS, **fields) -> dict:
        body = {"first_name": "Jamie", "last_name": "Rivera", **fields}
        if primary is not None:
            body["primary_address"] = primary
        resp = await client.post("/api/customers", json=body, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _make_customer


@pytest.fixture
def add_address(client):
    async def _add_address(headers: dict, customer_id: str, **fields) -> dict:
        body = {**PRIMARY_ADDRESS, "type": "SERVICE", **fields}
        resp = await client.post(
            f"/api/customers/{customer_id}/addresses", json=body, headers=headers
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _add_address
