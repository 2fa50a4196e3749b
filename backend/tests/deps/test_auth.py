from datetime import timedelta
from typing import Iterator

import pytest
from class_booking.config import Settings, get_settings
from class_booking.deps import get_current_admin_id
from class_booking.utils.auth import create_access_token
from fastapi import HTTPException


@pytest.fixture(autouse=True)
def _set_auth_secret(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("AUTH_SECRET", "testsecret")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.mark.asyncio
async def test_get_current_admin_id_accepts_admin_token() -> None:
    settings = Settings(auth_secret="testsecret")
    token = create_access_token(user_id=123, secret=settings.auth_secret, algorithm=settings.auth_algorithm)
    result = await get_current_admin_id(authorization=f"Bearer {token}")
    assert result == 123


@pytest.mark.asyncio
async def test_get_current_admin_id_rejects_missing_header() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_admin_id(authorization=None)
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_get_current_admin_id_rejects_non_bearer_scheme() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_admin_id(authorization="Basic abc")
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_get_current_admin_id_rejects_expired_token() -> None:
    settings = Settings(auth_secret="testsecret")
    token = create_access_token(
        user_id=1,
        secret=settings.auth_secret,
        algorithm=settings.auth_algorithm,
        expires_delta=timedelta(seconds=-1),
    )
    with pytest.raises(HTTPException) as excinfo:
        await get_current_admin_id(authorization=f"Bearer {token}")
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_get_current_admin_id_rejects_wrong_secret() -> None:
    token = create_access_token(user_id=1, secret="other-secret")
    with pytest.raises(HTTPException) as excinfo:
        await get_current_admin_id(authorization=f"Bearer {token}")
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_get_current_admin_id_forbids_other_roles() -> None:
    token = create_access_token(user_id=5, secret="testsecret", role="customer")
    with pytest.raises(HTTPException) as excinfo:
        await get_current_admin_id(authorization=f"Bearer {token}")
    assert excinfo.value.status_code == 403
