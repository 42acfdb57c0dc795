"""Integration tests for holiday CRUD API, authorization, and audit."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from hr_ledger.models.audit import AuditLog

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

HRD_HEADERS = {"X-Actor-Id": "200"}
MANAGER_HEADERS = {"X-Actor-Id": "100"}
EMPLOYEE_HEADERS = {"X-Actor-Id": "7"}
BASE_URL = "/holidays"


def _holiday_payload(date: str = "2025-06-12", name: str = "Independence Day") -> dict:
    return {"date": date, "name": name}


# ---------------------------------------------------------------------------
# Create holiday tests
# ---------------------------------------------------------------------------


async def test_create_holiday(async_client: AsyncClient) -> None:
    resp = await async_client.post(BASE_URL, json=_holiday_payload(), headers=HRD_HEADERS)
    assert resp.status_code == 201
    data = resp.json()
    assert data["date"] == "2025-06-12"
    assert data["name"] == "Independence Day"
    assert "id" in data


async def test_create_holiday_duplicate_date(async_client: AsyncClient) -> None:
    await async_client.post(BASE_URL, json=_holiday_payload(), headers=HRD_HEADERS)
    resp = await async_client.post(BASE_URL, json=_holiday_payload(name="Duplicate"), headers=HRD_HEADERS)
    assert resp.status_code == 409
    assert resp.json()["context"] == {"date": "2025-06-12"}


async def test_create_holiday_requires_hrd(async_client: AsyncClient) -> None:
    resp = await async_client.post(BASE_URL, json=_holiday_payload(), headers=MANAGER_HEADERS)
    assert resp.status_code == 403
    assert resp.json()["context"]["required_role"] == "HRD"


async def test_create_holiday_rejects_empty_name(async_client: AsyncClient) -> None:
    resp = await async_client.post(BASE_URL, json=_holiday_payload(name=""), headers=HRD_HEADERS)
    assert resp.status_code == 422


async def test_create_holiday_requires_actor_header(async_client: AsyncClient) -> None:
    resp = await async_client.post(BASE_URL, json=_holiday_payload())
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# List holiday tests
# ---------------------------------------------------------------------------


async def test_list_holidays_empty(async_client: AsyncClient) -> None:
    resp = await async_client.get(BASE_URL, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["items"] == []
    assert data["total"] == 0


async def test_list_holidays_sorted_by_date(async_client: AsyncClient) -> None:
    await async_client.post(BASE_URL, json=_holiday_payload("2025-12-25", "Christmas Day"), headers=HRD_HEADERS)
    await async_client.post(BASE_URL, json=_holiday_payload("2025-06-12", "Independence Day"), headers=HRD_HEADERS)

    resp = await async_client.get(BASE_URL, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 2
    assert [h["date"] for h in data["items"]] == ["2025-06-12", "2025-12-25"]


async def test_list_holidays_filter_by_year(async_client: AsyncClient) -> None:
    await async_client.post(BASE_URL, json=_holiday_payload("2025-12-25", "Christmas Day"), headers=HRD_HEADERS)
    await async_client.post(BASE_URL, json=_holiday_payload("2026-01-01", "New Year's Day"), headers=HRD_HEADERS)

    resp = await async_client.get(BASE_URL, params={"year": 2026}, headers=EMPLOYEE_HEADERS)
    data = resp.json()
    assert data["total"] == 1
    assert data["items"][0]["name"] == "New Year's Day"


async def test_list_holidays_pagination(async_client: AsyncClient) -> None:
    for day in ("2025-01-01", "2025-04-17", "2025-04-18"):
        await async_client.post(BASE_URL, json=_holiday_payload(day, f"Holiday {day}"), headers=HRD_HEADERS)

    resp = await async_client.get(BASE_URL, params={"offset": 1, "limit": 1}, headers=EMPLOYEE_HEADERS)
    data = resp.json()
    assert data["total"] == 3
    assert [h["date"] for h in data["items"]] == ["2025-04-17"]


# ---------------------------------------------------------------------------
# Delete holiday tests
# ---------------------------------------------------------------------------


async def test_delete_holiday(async_client: AsyncClient) -> None:
    create = await async_client.post(BASE_URL, json=_holiday_payload(), headers=HRD_HEADERS)
    holiday_id = create.json()["id"]

    resp = await async_client.delete(f"{BASE_URL}/{holiday_id}", headers=HRD_HEADERS)
    assert resp.status_code == 204

    listing = await async_client.get(BASE_URL, headers=HRD_HEADERS)
    assert listing.json()["total"] == 0


async def test_delete_holiday_not_found(async_client: AsyncClient) -> None:
    resp = await async_client.delete(f"{BASE_URL}/{uuid.uuid4()}", headers=HRD_HEADERS)
    assert resp.status_code == 404


async def test_delete_holiday_requires_hrd(async_client: AsyncClient) -> None:
    create = await async_client.post(BASE_URL, json=_holiday_payload(), headers=HRD_HEADERS)
    resp = await async_client.delete(f"{BASE_URL}/{create.json()['id']}", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Calendar effect and audit
# ---------------------------------------------------------------------------


async def test_stored_holiday_changes_overtime_rate(async_client: AsyncClient) -> None:
    shift = {"work_date": "2025-06-12", "start_time": "09:00:00", "end_time": "11:00:00"}

    before = await async_client.post("/overtime/rate", json=shift, headers=EMPLOYEE_HEADERS)
    assert before.json()["segments"][0]["day_type"] == "ORDINARY"

    await async_client.post(BASE_URL, json=_holiday_payload(), headers=HRD_HEADERS)

    after = await async_client.post("/overtime/rate", json=shift, headers=EMPLOYEE_HEADERS)
    data = after.json()
    assert data["segments"][0]["day_type"] == "REGULAR_HOLIDAY"
    assert float(data["multiplier"]) == 2.6


async def test_holiday_writes_are_audited(async_client: AsyncClient, db_session: AsyncSession) -> None:
    create = await async_client.post(BASE_URL, json=_holiday_payload(), headers=HRD_HEADERS)
    holiday_id = create.json()["id"]
    await async_client.delete(f"{BASE_URL}/{holiday_id}", headers=HRD_HEADERS)

    result = await db_session.execute(select(AuditLog).where(col(AuditLog.entity_id) == holiday_id))
    entries = list(result.scalars().all())
    by_action = {e.action: e for e in entries}
    assert set(by_action) == {"CREATE", "DELETE"}
    assert all(e.actor_id == 200 for e in entries)
    assert by_action["CREATE"].after_json is not None
    assert by_action["CREATE"].after_json["name"] == "Independence Day"
    assert by_action["DELETE"].before_json is not None
