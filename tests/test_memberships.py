import pytest
from datetime import date
from decimal import Decimal
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.config import settings
from backoffice.models.audit import ActivityLog
from backoffice.models.enums import MemberStatus, MembershipStatus
from backoffice.models.finance import Payment, SalesLog, SalesType
from backoffice.models.member import Member, Membership, MembershipHold
from backoffice.services.membership_store import calculate_end_date
from tests.factories import create_member, create_membership


def memberships_url(member_id) -> str:
    return f"{settings.API_V1_STR}/members/{member_id}/memberships"


async def _logs(db_session: AsyncSession, member_id) -> list[ActivityLog]:
    result = await db_session.execute(
        select(ActivityLog).where(ActivityLog.member_id == member_id).order_by(ActivityLog.created_at)
    )
    return list(result.scalars().all())


def test_calculate_end_date():
    assert calculate_end_date(date(2024, 1, 1), 3) == date(2024, 1, 21)
    assert calculate_end_date(date(2024, 1, 1), 10) == date(2024, 3, 10)
    assert calculate_end_date(date(2024, 1, 1), 4, days_per_session=1) == date(2024, 1, 4)


@pytest.mark.asyncio
async def test_create_membership_with_payment(client: AsyncClient, db_session: AsyncSession, gym, admin_headers):
    member = await create_member(db_session, gym, name="A", status=MemberStatus.EXPIRED)
    member_id = member.id

    response = await client.post(
        memberships_url(member_id),
        json={
            "name": "PT 10회",
            "membership_type": "PT",
            "total_sessions": 10,
            "start_date": "2024-01-01",
            "amount": 550000,
            "payment_method": "card",
            "registration_type": "재등록",
        },
        headers=admin_headers,
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["end_date"] == "2024-03-10"
    assert data["used_sessions"] == 0
    assert data["remaining_sessions"] == 10
    assert data["status"] == "active"

    await db_session.refresh(member)
    assert member.status == MemberStatus.ACTIVE

    logs = await _logs(db_session, member_id)
    assert [log.action_type for log in logs] == ["membership_created"]
    assert logs[0].changes["after"]["total_sessions"] == 10

    payment = (await db_session.execute(select(Payment))).scalar_one()
    assert payment.amount == Decimal("550000.00")
    assert payment.registration_type == "재등록"
    assert payment.method == "card"
    sale = (await db_session.execute(select(SalesLog))).scalar_one()
    assert sale.sales_type == SalesType.MEMBERSHIP


@pytest.mark.asyncio
async def test_create_membership_keeps_paused_member_paused(client: AsyncClient, db_session: AsyncSession, gym, admin_headers):
    member = await create_member(db_session, gym, name="A", status=MemberStatus.PAUSED)

    response = await client.post(
        memberships_url(member.id),
        json={"name": "헬스 1개월", "start_date": "2024-01-01", "end_date": "2024-01-31"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["data"]["total_sessions"] is None

    await db_session.refresh(member)
    assert member.status == MemberStatus.PAUSED
    assert (await db_session.execute(select(Payment))).scalars().all() == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, message",
    [
        ({"name": "PT", "total_sessions": 5, "used_sessions": 6}, "사용 횟수(6회)가 총 횟수(5회)를 초과할 수 없습니다."),
        ({"name": "PT", "start_date": "2024-02-01", "end_date": "2024-01-01"}, "종료일은 시작일 이후여야 합니다."),
        ({"name": "   "}, "회원권 이름이 필요합니다."),
    ],
)
async def test_create_membership_validation(client: AsyncClient, db_session: AsyncSession, gym, admin_headers, payload, message):
    member = await create_member(db_session, gym, name="A")

    response = await client.post(memberships_url(member.id), json=payload, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == message
    assert (await db_session.execute(select(Membership))).scalars().all() == []


@pytest.mark.asyncio
async def test_update_membership_logs_diff_only_on_change(client: AsyncClient, db_session: AsyncSession, gym, admin_headers):
    member = await create_member(db_session, gym, name="A")
    membership = await create_membership(db_session, member, total=10, used=2, end=date(2024, 3, 10))
    member_id, membership_id = member.id, membership.id
    url = f"{memberships_url(member_id)}/{membership_id}"

    response = await client.put(url, json={"total_sessions": 12, "end_date": "2024-03-24"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["remaining_sessions"] == 10

    logs = await _logs(db_session, member_id)
    assert [log.action_type for log in logs] == ["membership_updated"]
    assert "총 횟수: 10 → 12" in logs[0].description
    assert "종료일: 2024-03-10 → 2024-03-24" in logs[0].description
    assert logs[0].changes["before"]["total_sessions"] == 10
    assert logs[0].changes["after"]["total_sessions"] == 12

    response = await client.put(url, json={"total_sessions": 12}, headers=admin_headers)
    assert response.status_code == 200
    assert len(await _logs(db_session, member_id)) == 1


@pytest.mark.asyncio
async def test_update_membership_rejects_invalid_counters(client: AsyncClient, db_session: AsyncSession, gym, admin_headers):
    member = await create_member(db_session, gym, name="A")
    membership = await create_membership(db_session, member, total=10, used=8)
    member_id, membership_id = member.id, membership.id

    response = await client.put(
        f"{memberships_url(member_id)}/{membership_id}", json={"total_sessions": 5}, headers=admin_headers
    )
    assert response.status_code == 400

    await db_session.refresh(membership)
    assert membership.total_sessions == 10

    response = await client.put(
        f"{memberships_url(member_id)}/00000000-0000-0000-0000-000000000000",
        json={"total_sessions": 5},
        headers=admin_headers,
    )
    assert response.status_code == 404
    assert response.json()["error"] == "회원권을 찾을 수 없습니다."


@pytest.mark.asyncio
async def test_delete_membership_logs_snapshot(client: AsyncClient, db_session: AsyncSession, gym, admin_headers):
    member = await create_member(db_session, gym, name="A")
    membership = await create_membership(db_session, member, total=10, used=3)
    member_id, membership_id = member.id, membership.id

    response = await client.delete(f"{memberships_url(member_id)}/{membership_id}", headers=admin_headers)
    assert response.status_code == 200

    remaining = (await db_session.execute(select(Membership).where(Membership.member_id == member_id))).scalars().all()
    assert remaining == []
    logs = await _logs(db_session, member_id)
    assert [log.action_type for log in logs] == ["membership_deleted"]
    assert logs[0].changes["before"]["used_sessions"] == 3
    assert logs[0].membership_id is None


@pytest.mark.asyncio
async def test_hold_extends_end_date_and_pauses_member(client: AsyncClient, db_session: AsyncSession, gym, admin_headers):
    member = await create_member(db_session, gym, name="A")
    membership = await create_membership(db_session, member, total=10, end=date(2024, 6, 30))
    member_id, membership_id = member.id, membership.id
    url = f"{memberships_url(member_id)}/{membership_id}"

    response = await client.post(
        f"{url}/hold",
        json={"hold_days": 14, "hold_start_date": "2024-05-01", "hold_reason": "출장"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    hold = response.json()["data"]
    assert hold["hold_end_date"] == "2024-05-14"
    assert hold["original_end_date"] == "2024-06-30"
    assert hold["new_end_date"] == "2024-07-14"

    await db_session.refresh(membership)
    await db_session.refresh(member)
    assert membership.end_date == date(2024, 7, 14)
    assert member.status == MemberStatus.PAUSED

    logs = await _logs(db_session, member_id)
    assert [log.action_type for log in logs] == ["membership_hold"]

    response = await client.get(f"{url}/holds", headers=admin_headers)
    holds = response.json()["data"]
    assert len(holds) == 1
    assert holds[0]["hold_reason"] == "출장"
    assert (await db_session.execute(select(MembershipHold))).scalar_one().hold_days == 14


@pytest.mark.asyncio
async def test_hold_requires_active_membership(client: AsyncClient, db_session: AsyncSession, gym, admin_headers):
    member = await create_member(db_session, gym, name="A")
    membership = await create_membership(db_session, member, total=10, used=10, status=MembershipStatus.FINISHED)
    member_id, membership_id = member.id, membership.id

    response = await client.post(
        f"{memberships_url(member_id)}/{membership_id}/hold", json={"hold_days": 7}, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["error"] == "활성 상태의 회원권만 홀딩할 수 있습니다."

    status = (await db_session.execute(select(Member.status).where(Member.id == member_id))).scalar_one()
    assert status == MemberStatus.ACTIVE

    response = await client.post(
        f"{memberships_url(member_id)}/{membership_id}/hold", json={"hold_days": 0}, headers=admin_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, message",
    [
        ({"used_sessions": None}, "사용 횟수를 입력해주세요."),
        ({"name": None}, "회원권 이름이 필요합니다."),
    ],
)
async def test_update_membership_rejects_null_required_fields(
    client: AsyncClient, db_session: AsyncSession, gym, admin_headers, payload, message
):
    member = await create_member(db_session, gym, name="A")
    membership = await create_membership(db_session, member, total=10, used=2)
    member_id, membership_id = member.id, membership.id

    response = await client.put(
        f"{memberships_url(member_id)}/{membership_id}", json=payload, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["error"] == message

    await db_session.refresh(membership)
    assert membership.used_sessions == 2
    assert membership.name == "PT 10회"
