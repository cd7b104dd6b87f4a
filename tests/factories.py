from datetime import date, datetime, timedelta, timezone

from backoffice.auth.security import get_password_hash
from backoffice.config import settings
from backoffice.models.enums import StaffRole, MemberStatus, MembershipStatus, ScheduleStatus
from backoffice.models.member import Member, Membership
from backoffice.models.schedule import Schedule
from backoffice.models.tenant import Staff

PASSWORD = "password123"


async def create_staff(db_session, *, email, gym, role=StaffRole.ADMIN, name="Staff") -> Staff:
    staff = Staff(
        email=email,
        hashed_password=get_password_hash(PASSWORD),
        name=name,
        role=role,
        company_id=gym.company_id if gym else None,
        gym_id=gym.id if gym else None,
        is_active=True,
    )
    db_session.add(staff)
    await db_session.commit()
    return staff


async def login_headers(client, email) -> dict:
    response = await client.post(
        f"{settings.API_V1_STR}/auth/login",
        json={"email": email, "password": PASSWORD}
    )
    token = response.json()["data"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


async def create_member(db_session, gym, name="회원", phone="010-0000-0000", status=MemberStatus.ACTIVE) -> Member:
    member = Member(company_id=gym.company_id, gym_id=gym.id, name=name, phone=phone, status=status)
    db_session.add(member)
    await db_session.commit()
    return member


async def create_membership(
    db_session,
    member,
    *,
    total=10,
    used=0,
    membership_type="PT",
    name="PT 10회",
    start=date(2024, 1, 1),
    end=None,
    status=MembershipStatus.ACTIVE,
) -> Membership:
    membership = Membership(
        gym_id=member.gym_id,
        member_id=member.id,
        name=name,
        membership_type=membership_type,
        total_sessions=total,
        used_sessions=used,
        start_date=start,
        end_date=end,
        status=status,
    )
    db_session.add(membership)
    await db_session.commit()
    return membership


async def create_schedule(
    db_session,
    *,
    gym_id,
    staff_id,
    member_id,
    start_time,
    schedule_type="pt",
    status=ScheduleStatus.RESERVED,
    membership_id=None,
) -> Schedule:
    schedule = Schedule(
        gym_id=gym_id,
        staff_id=staff_id,
        member_id=member_id,
        type=schedule_type,
        status=status,
        membership_id=membership_id,
        start_time=start_time,
        end_time=start_time + timedelta(hours=1),
    )
    db_session.add(schedule)
    await db_session.commit()
    return schedule


def at(day: int, hour: int = 10) -> datetime:
    return datetime(2024, 3, day, hour, tzinfo=timezone.utc)
