import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.config import settings
from backoffice.models.finance import Payment, SalesLog, SalesType
from backoffice.services.payment_service import round_money
from tests.factories import create_member, create_membership

SUMMARY_URL = f"{settings.API_V1_STR}/sales/summary"


def test_round_money():
    assert str(round_money(1000)) == "1000.00"
    assert str(round_money(10.005)) == "10.01"


@pytest.mark.asyncio
async def test_sales_summary_groups_by_type_and_method(client: AsyncClient, db_session: AsyncSession, gym, admin_headers):
    member_a = await create_member(db_session, gym, name="A")
    member_b = await create_member(db_session, gym, name="B")
    source = await create_membership(db_session, member_a, total=10)
    a_id, b_id, source_id = member_a.id, member_b.id, source.id

    response = await client.post(
        f"{settings.API_V1_STR}/members/{b_id}/memberships",
        json={"name": "PT 20회", "membership_type": "PT", "total_sessions": 20, "amount": 1000000, "payment_method": "card"},
        headers=admin_headers,
    )
    assert response.status_code == 201

    response = await client.post(
        f"{settings.API_V1_STR}/admin/members/{a_id}/membership/transfer",
        json={
            "from_membership_id": str(source_id),
            "to_member_id": str(b_id),
            "transfer_sessions": 2,
            "transfer_date": "2024-01-01",
            "transfer_fee": 30000,
        },
        headers=admin_headers,
    )
    assert response.status_code == 200

    response = await client.get(SUMMARY_URL, headers=admin_headers)
    assert response.status_code == 200
    summary = response.json()["data"]
    assert summary["total_count"] == 2
    assert summary["total_amount"] == 1030000.0
    assert summary["by_type"][SalesType.MEMBERSHIP] == {"count": 1, "amount": 1000000.0}
    assert summary["by_type"][SalesType.TRANSFER_FEE] == {"count": 1, "amount": 30000.0}
    assert summary["by_method"] == {"card": 1000000.0, "cash": 30000.0}

    response = await client.get(
        SUMMARY_URL, params={"start_date": "2000-01-01", "end_date": "2000-12-31"}, headers=admin_headers
    )
    assert response.json()["data"]["total_count"] == 0

    response = await client.get(
        SUMMARY_URL, params={"start_date": "2024-02-01", "end_date": "2024-01-01"}, headers=admin_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_sales_log_failure_does_not_block_payment(
    client: AsyncClient, db_session: AsyncSession, gym, admin_headers, monkeypatch
):
    import backoffice.services.payment_service as payment_service

    class BrokenSalesLog:
        def __init__(self, **kwargs):
            raise RuntimeError("sales log unavailable")

    monkeypatch.setattr(payment_service, "SalesLog", BrokenSalesLog)
    member = await create_member(db_session, gym, name="A")

    response = await client.post(
        f"{settings.API_V1_STR}/members/{member.id}/memberships",
        json={"name": "PT 10회", "membership_type": "PT", "total_sessions": 10, "amount": 500000},
        headers=admin_headers,
    )
    assert response.status_code == 201

    assert len((await db_session.execute(select(Payment))).scalars().all()) == 1
    assert (await db_session.execute(select(SalesLog))).scalars().all() == []
