"""
Card Sweep API Tests
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from app.main import app
from factories import auth_headers_for, create_patient


SWEEP = "/api/v1/card-sweep"


@pytest.mark.asyncio
@pytest.mark.api
@pytest.mark.sweep
class TestCardSweepApi:
    async def test_trigger_deactivates_lapsed_cards(
        self, client: AsyncClient, db_session, admin_user, now
    ):
        await create_patient(
            db_session, "P-020", now + timedelta(days=10), now - timedelta(days=1)
        )
        await create_patient(db_session, "P-021", now + timedelta(days=10), now)

        response = await client.post(
            f"{SWEEP}/trigger", headers=auth_headers_for(admin_user)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["trigger"] == "manual"
        assert data["scanned"] == 2
        assert data["deactivated"] == 1
        assert data["failed"] == 0

        runs = await client.get(f"{SWEEP}/runs", headers=auth_headers_for(admin_user))
        assert runs.status_code == 200
        assert [run["id"] for run in runs.json()] == [data["id"]]

    async def test_status(self, client: AsyncClient, admin_user):
        response = await client.get(
            f"{SWEEP}/status", headers=auth_headers_for(admin_user)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "stopped"
        assert data["last_run_at"] is None
        assert data["timezone"] == "UTC"

    @pytest.mark.parametrize("path", ["/status", "/runs"])
    async def test_admin_only(self, client: AsyncClient, receptionist, path):
        response = await client.get(
            f"{SWEEP}{path}", headers=auth_headers_for(receptionist)
        )
        assert response.status_code == 403

    async def test_trigger_admin_only(self, client: AsyncClient, doctor_a):
        response = await client.post(
            f"{SWEEP}/trigger", headers=auth_headers_for(doctor_a)
        )
        assert response.status_code == 403

    async def test_unavailable_without_sweep(self, client: AsyncClient, admin_user):
        app.state.card_sweep = None

        response = await client.get(
            f"{SWEEP}/status", headers=auth_headers_for(admin_user)
        )
        assert response.status_code == 503
