from __future__ import annotations

from datetime import date

import pytest

from app.main import app
from app.supabase import AuthContext, get_auth_context

FROZEN_TODAY = date(2024, 6, 15)
OWNER_ID = "0f8e4a52-6c1d-4b7a-9f3e-2d5c8b1a7e90"
OTHER_OWNER_ID = "5a9c3e17-2b4f-4d8a-8c6e-1f0b7d3a9e24"


def use_auth(supabase, *, user_id: str = OWNER_ID, is_admin: bool = False) -> AuthContext:
    auth = AuthContext(
        user_id=user_id,
        user_email="parent@example.com",
        access_token="test-token",
        supabase=supabase,
        is_admin=is_admin,
    )
    app.dependency_overrides[get_auth_context] = lambda: auth
    return auth


@pytest.fixture(autouse=True)
def reset_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def frozen_today(monkeypatch: pytest.MonkeyPatch) -> date:
    for module in ["app.routes.vaccines", "app.routes.reminders", "app.routes.dashboard"]:
        monkeypatch.setattr(f"{module}.current_date", lambda: FROZEN_TODAY)
    return FROZEN_TODAY
