import pytest
import uuid
from datetime import date
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.config import settings
from backoffice.models.enums import MembershipStatus, ScheduleStatus, StaffRole
from backoffice.models.member import Membership
from backoffice.models.schedule import Attendance, Schedule
from backoffice.services.session_accounting import (
    entries_for_membership,
    is_credit_deducting,
    is_display_counted,
    number_sessions,
    summarize,
)
from tests.factories import at, create_member, create_membership, create_schedule, create_staff, login_headers


def _entry(day: int, status: ScheduleStatus) -> Schedule:
    return Schedule(id=uuid.uuid4(), type="pt", status=status, start_time=at(day), end_time=at(day, 11))


def status_url(schedule_id) -> str:
    return f"{settings.API_V1_STR}/schedules/{schedule_id}/status"


def test_status_classification():
    assert is_display_counted("completed")
    assert is_display_counted(ScheduleStatus.SERVICE)
    assert is_display_counted(ScheduleStatus.NO_SHOW_DEDUCTED)
    assert not is_display_counted(ScheduleStatus.NO_SHOW)
    assert not is_display_counted(ScheduleStatus.RESERVED)

    assert is_credit_deducting(ScheduleStatus.COMPLETED)
    assert is_credit_deducting("no_show_deducted")
    assert not is_credit_deducting(ScheduleStatus.SERVICE)
    assert not is_credit_deducting(ScheduleStatus.NO_SHOW)
    assert not is_credit_deducting(ScheduleStatus.CANCELLED)


def test_number_sessions_orders_by_start_time():
    entries = [
        _entry(5, ScheduleStatus.RESERVED),
        _entry(1, ScheduleStatus.COMPLETED),
        _entry(3, ScheduleStatus.CANCELLED),
        _entry(2, ScheduleStatus.SERVICE),
        _entry(4, ScheduleStatus.NO_SHOW),
        _entry(6, ScheduleStatus.NO_SHOW_DEDUCTED),
    ]
    numbered = number_sessions(entries)

    assert [s.start_time.day for s in numbered] == [1, 2, 3, 4, 5, 6]
    assert [s.session_number for s in numbered] == [1, 2, None, 3, 3, 3]
    assert [s.is_not_completed for s in numbered] == [False, False, False, True, True, False]
    assert [s.deducts_credit for s in numbered] == [True, False, False, False, False, True]


def test_summarize_counted_membership():
    membership = Membership(id=uuid.uuid4(), membership_type="PT", total_sessions=10, used_sessions=3, end_date=date(2024, 3, 31))
    entries = [
        _entry(1, ScheduleStatus.COMPLETED),
        _entry(2, ScheduleStatus.SERVICE),
        _entry(3, ScheduleStatus.NO_SHOW_DEDUCTED),
        _entry(4, ScheduleStatus.RESERVED),
    ]
    summary = summarize(membership, entries, today=date(2024, 3, 21))

    assert summary.is_unlimited is False
    assert summary.deducted_count == 2
    assert summary.remaining_sessions == 7
    assert summary.schedule_remaining_sessions == 8
    assert summary.is_consistent is False
    assert summary.remaining_days == 10
    assert summary.is_past_end_date is False
    assert [s.session_number for s in summary.sessions] == [1, 2, 3, 4]


def test_summarize_unlimited_membership_has_no_numbers():
    membership = Membership(id=uuid.uuid4(), membership_type="PT", total_sessions=None, used_sessions=0, end_date=date(2024, 3, 1))
    summary = summarize(membership, [_entry(1, ScheduleStatus.COMPLETED)], today=date(2024, 3, 5))

    assert summary.is_unlimited is True
    assert summary.remaining_sessions is None
    assert summary.schedule_remaining_sessions is None
    assert summary.is_consistent is True
    assert summary.is_past_end_date is True
    assert [s.session_number for s in summary.sessions] == [None]


@pytest.mark.asyncio
async def test_completing_a_session_deducts_one_credit(client: AsyncClient, db_session: AsyncSession, gym, admin, admin_headers):
    member = await create_member(db_session, gym, name="A")
    membership = await create_membership(db_session, member, total=10, used=2, end=date(2024, 12, 31))
    schedule = await create_schedule(db_session, gym_id=gym.id, staff_id=admin.id, member_id=member.id, start_time=at(1))

    response = await client.post(status_url(schedule.id), json={"status": "completed"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["membership_id"] == str(membership.id)

    await db_session.refresh(membership)
    assert membership.used_sessions == 3

    attendance = (await db_session.execute(select(Attendance).where(Attendance.schedule_id == schedule.id))).scalar_one()
    assert attendance.status_code == "completed"
    assert attendance.memo == "[자동] 출석 처리 / PT 10회 (1회 차감)"

    # Re-sending a deducting status does not charge twice.
    response = await client.post(status_url(schedule.id), json={"status": "no_show_deducted"}, headers=admin_headers)
    assert response.status_code == 200
    await db_session.refresh(membership)
    assert membership.used_sessions == 3

    # Reverting releases the credit.
    response = await client.post(status_url(schedule.id), json={"status": "reserved"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["membership_id"] is None
    await db_session.refresh(membership)
    assert membership.used_sessions == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["no_show", "service", "cancelled"])
async def test_non_deducting_statuses_keep_credits(client: AsyncClient, db_session: AsyncSession, gym, admin, admin_headers, status):
    member = await create_member(db_session, gym, name="A")
    membership = await create_membership(db_session, member, total=10, used=2)
    schedule = await create_schedule(db_session, gym_id=gym.id, staff_id=admin.id, member_id=member.id, start_time=at(1))

    response = await client.post(status_url(schedule.id), json={"status": status}, headers=admin_headers)
    assert response.status_code == 200

    await db_session.refresh(membership)
    assert membership.used_sessions == 2


@pytest.mark.asyncio
async def test_exhausted_membership_is_not_overdrawn(client: AsyncClient, db_session: AsyncSession, gym, admin, admin_headers):
    member = await create_member(db_session, gym, name="A")
    membership = await create_membership(db_session, member, total=5, used=5)
    schedule = await create_schedule(db_session, gym_id=gym.id, staff_id=admin.id, member_id=member.id, start_time=at(1))

    response = await client.post(status_url(schedule.id), json={"status": "completed"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["membership_id"] is None

    await db_session.refresh(membership)
    assert membership.used_sessions == 5
    attendance = (await db_session.execute(select(Attendance).where(Attendance.schedule_id == schedule.id))).scalar_one()
    assert attendance.memo == "[자동] 출석 처리 / PT 10회 (횟수 소진됨)"


@pytest.mark.asyncio
async def test_status_change_permissions(client: AsyncClient, db_session: AsyncSession, gym, admin):
    trainer = await create_staff(db_session, email="trainer@gym.com", gym=gym, role=StaffRole.STAFF, name="트레이너")
    colleague = await create_staff(db_session, email="colleague@gym.com", gym=gym, role=StaffRole.STAFF, name="동료")
    member = await create_member(db_session, gym, name="A")
    await create_membership(db_session, member, total=10)
    schedule = await create_schedule(db_session, gym_id=gym.id, staff_id=trainer.id, member_id=member.id, start_time=at(1))
    schedule_id = schedule.id
    assert colleague.id != trainer.id

    headers = await login_headers(client, "colleague@gym.com")
    response = await client.post(status_url(schedule_id), json={"status": "completed"}, headers=headers)
    assert response.status_code == 403
    assert response.json()["error"] == "권한이 없습니다."

    headers = await login_headers(client, "trainer@gym.com")
    response = await client.post(status_url(schedule_id), json={"status": "completed"}, headers=headers)
    assert response.status_code == 200

    response = await client.post(status_url(uuid.uuid4()), json={"status": "completed"}, headers=headers)
    assert response.status_code == 404
    assert response.json()["error"] == "스케줄을 찾을 수 없습니다."


@pytest.mark.asyncio
async def test_session_summary_endpoint(client: AsyncClient, db_session: AsyncSession, gym, admin, admin_headers):
    member = await create_member(db_session, gym, name="A")
    membership = await create_membership(db_session, member, total=10, used=0, end=date(2099, 1, 1))
    member_id, membership_id = member.id, membership.id

    created = []
    for day in (1, 2, 3):
        response = await client.post(
            f"{settings.API_V1_STR}/schedules",
            json={
                "member_id": str(member_id),
                "type": "PT",
                "start_time": at(day).isoformat(),
                "end_time": at(day, 11).isoformat(),
            },
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["data"]["status"] == "reserved"
        assert response.json()["data"]["member_name"] == "A"
        created.append(response.json()["data"]["id"])

    await client.post(status_url(created[0]), json={"status": "completed"}, headers=admin_headers)
    await client.post(status_url(created[1]), json={"status": "service"}, headers=admin_headers)

    response = await client.get(
        f"{settings.API_V1_STR}/members/{member_id}/sessions",
        params={"membership_type": "pt"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    summaries = response.json()["data"]
    assert len(summaries) == 1
    summary = summaries[0]
    assert summary["membership_id"] == str(membership_id)
    assert summary["used_sessions"] == 1
    assert summary["deducted_count"] == 1
    assert summary["remaining_sessions"] == 9
    assert summary["is_consistent"] is True
    assert [s["session_number"] for s in summary["sessions"]] == [1, 2, 3]
    assert [s["is_not_completed"] for s in summary["sessions"]] == [False, False, True]


@pytest.mark.asyncio
async def test_reconcile_used_sessions(client: AsyncClient, db_session: AsyncSession, gym, admin, admin_headers):
    member = await create_member(db_session, gym, name="A")
    membership = await create_membership(db_session, member, total=10, used=5)
    for day, status in ((1, ScheduleStatus.COMPLETED), (2, ScheduleStatus.NO_SHOW_DEDUCTED), (3, ScheduleStatus.SERVICE)):
        await create_schedule(
            db_session, gym_id=gym.id, staff_id=admin.id, member_id=member.id, start_time=at(day), status=status
        )

    response = await client.post(
        f"{settings.API_V1_STR}/members/{member.id}/memberships/{membership.id}/reconcile",
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["used_sessions"] == 2

    await db_session.refresh(membership)
    assert membership.used_sessions == 2


def test_entries_are_attributed_to_their_membership():
    old = Membership(id=uuid.uuid4(), membership_type="PT", total_sessions=3, used_sessions=3,
                     start_date=date(2024, 1, 1), end_date=date(2024, 3, 5))
    new = Membership(id=uuid.uuid4(), membership_type="PT", total_sessions=10, used_sessions=0,
                     start_date=date(2024, 3, 10), end_date=None)
    charged_to_old = _entry(1, ScheduleStatus.COMPLETED)
    charged_to_old.membership_id = old.id
    unattributed_old = _entry(3, ScheduleStatus.COMPLETED)
    unattributed_new = _entry(12, ScheduleStatus.RESERVED)
    entries = [charged_to_old, unattributed_old, unattributed_new]

    assert entries_for_membership(old, entries) == [charged_to_old, unattributed_old]
    assert entries_for_membership(new, entries) == [unattributed_new]


@pytest.mark.asyncio
async def test_repurchased_package_keeps_its_own_ledger(client: AsyncClient, db_session: AsyncSession, gym, admin, admin_headers):
    member = await create_member(db_session, gym, name="A")
    old = await create_membership(
        db_session, member, total=3, used=3, name="PT 3회", end=date(2024, 3, 5), status=MembershipStatus.FINISHED
    )
    new = await create_membership(db_session, member, total=10, used=0, start=date(2024, 3, 10), end=date(2099, 1, 1))
    member_id, old_id, new_id = member.id, old.id, new.id
    for day in (1, 2):
        await create_schedule(
            db_session, gym_id=gym.id, staff_id=admin.id, member_id=member_id, start_time=at(day),
            status=ScheduleStatus.COMPLETED, membership_id=old_id,
        )
    await create_schedule(
        db_session, gym_id=gym.id, staff_id=admin.id, member_id=member_id, start_time=at(3),
        status=ScheduleStatus.COMPLETED,
    )

    response = await client.post(
        f"{settings.API_V1_STR}/members/{member_id}/memberships/{new_id}/reconcile", headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["used_sessions"] == 0
    await db_session.refresh(new)
    assert new.used_sessions == 0

    await create_schedule(
        db_session, gym_id=gym.id, staff_id=admin.id, member_id=member_id, start_time=at(12),
        status=ScheduleStatus.COMPLETED,
    )
    response = await client.post(
        f"{settings.API_V1_STR}/members/{member_id}/memberships/{new_id}/reconcile", headers=admin_headers
    )
    assert response.json()["data"]["used_sessions"] == 1

    response = await client.get(
        f"{settings.API_V1_STR}/members/{member_id}/sessions", params={"membership_type": "PT"}, headers=admin_headers
    )
    summaries = {s["membership_id"]: s for s in response.json()["data"]}
    assert summaries[str(old_id)]["deducted_count"] == 3
    assert summaries[str(old_id)]["is_consistent"] is True
    assert summaries[str(new_id)]["deducted_count"] == 1
    assert summaries[str(new_id)]["remaining_sessions"] == 9
    assert summaries[str(new_id)]["is_consistent"] is True
