from datetime import datetime, timedelta, timezone
from pathlib import Path

from sqlalchemy import func, select

from fieldsmart.auth.models import RefreshToken
from fieldsmart.auth.service import purge_refresh_tokens
from fieldsmart.config import Settings
from fieldsmart.core.scheduler import run_maintenance_job


async def _token_count(db_session) -> int:
    return (await db_session.execute(select(func.count(RefreshToken.id)))).scalar()


async def test_purge_drops_revoked_and_expired_tokens(client, register, db_session):
    await register()
    login = await client.post("/api/auth/login", json={
        "email": "owner@acmeheating.com", "password": "correct-horse-battery",
    })
    refresh_token = login.json()["data"]["refresh_token"]
    await client.post(
        "/api/auth/logout",
        json={"refresh_token": refresh_token},
        headers={"Authorization": f"Bearer {login.json()['data']['access_token']}"},
    )
    assert await _token_count(db_session) == 2

    # Only the logged-out token is gone; the first login's token is still live
    assert await purge_refresh_tokens(db_session) == 1
    assert await _token_count(db_session) == 1

    later = datetime.now(timezone.utc) + timedelta(days=30)
    assert await purge_refresh_tokens(db_session, now=later) == 1
    assert await _token_count(db_session) == 0


async def test_maintenance_job_failures_are_logged(session_factory, caplog):
    async def broken(db):
        raise RuntimeError("lock timeout")

    assert await run_maintenance_job(session_factory, "broken", broken) == 0
    assert "Scheduled job broken failed" in caplog.text


async def test_maintenance_job_returns_its_count(session_factory):
    async def touch_three(db):
        return 3

    assert await run_maintenance_job(session_factory, "touch", touch_three) == 3


def test_sqlite_path():
    assert Settings(_env_file=None).sqlite_path == Path("./data/fieldsmart.db")
    assert Settings(_env_file=None, database_url="sqlite+aiosqlite:///:memory:").sqlite_path is None
    postgres = Settings(_env_file=None, database_url="postgresql+asyncpg://u:p@db/fieldsmart")
    assert postgres.is_sqlite is False
    assert postgres.sqlite_path is None
