import asyncio
import logging
from datetime import timedelta
from sqlalchemy import select
from backoffice.database import AsyncSessionLocal
from backoffice.models.tenant import Company, Gym, Staff
from backoffice.models.member import Member, Membership
from backoffice.models.enums import StaffRole, MemberStatus, MembershipStatus
from backoffice.auth.security import get_password_hash
from backoffice.services.membership_store import calculate_end_date
from backoffice.services.timezone_service import today_in_gym_tz

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

COMPANY_NAME = "Demo Fitness"
GYM_NAME = "Gangnam"

STAFF = [
    {"email": "owner@demo-fitness.com", "name": "대표", "role": StaffRole.COMPANY_ADMIN},
    {"email": "manager@demo-fitness.com", "name": "지점장", "role": StaffRole.ADMIN},
    {"email": "trainer.kim@demo-fitness.com", "name": "김트레이너", "role": StaffRole.STAFF},
]
DEFAULT_PASSWORD = "GymPass123!"

MEMBERS = [
    # name, phone, PT sessions (total, used)
    ("홍길동", "010-1234-5678", (20, 8)),
    ("이영희", "010-2222-3333", (10, 0)),
    ("박철수", "010-4444-5555", None),
]


async def seed_data():
    async with AsyncSessionLocal() as session:
        company = (await session.execute(select(Company).where(Company.name == COMPANY_NAME))).scalar_one_or_none()
        if company:
            logger.info("Company already exists: %s", COMPANY_NAME)
            return

        company = Company(name=COMPANY_NAME)
        session.add(company)
        await session.flush()
        gym = Gym(company_id=company.id, name=GYM_NAME)
        session.add(gym)
        await session.flush()

        for staff_data in STAFF:
            session.add(
                Staff(
                    company_id=company.id,
                    gym_id=None if staff_data["role"] == StaffRole.COMPANY_ADMIN else gym.id,
                    email=staff_data["email"],
                    name=staff_data["name"],
                    role=staff_data["role"],
                    hashed_password=get_password_hash(DEFAULT_PASSWORD),
                    is_active=True,
                )
            )
            logger.info("Created staff: %s", staff_data["email"])

        today = today_in_gym_tz()
        for name, phone, pt in MEMBERS:
            member = Member(
                company_id=company.id,
                gym_id=gym.id,
                name=name,
                phone=phone,
                status=MemberStatus.ACTIVE if pt else MemberStatus.EXPIRED,
            )
            session.add(member)
            await session.flush()
            if pt:
                total, used = pt
                start = today - timedelta(days=used * 7)
                session.add(
                    Membership(
                        gym_id=gym.id,
                        member_id=member.id,
                        name=f"PT {total}회",
                        membership_type="PT",
                        total_sessions=total,
                        used_sessions=used,
                        start_date=start,
                        end_date=calculate_end_date(start, total),
                        status=MembershipStatus.ACTIVE,
                    )
                )
            logger.info("Created member: %s", name)

        await session.commit()
    logger.info("Seeding complete.")

if __name__ == "__main__":
    asyncio.run(seed_data())
