import uuid
from datetime import date, datetime, timezone
from sqlalchemy import String, ForeignKey, DateTime, Date, Integer, Float, Text, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from backoffice.database import Base
from backoffice.models.enums import MemberStatus, MembershipStatus, db_enum

class Member(Base):
    __tablename__ = "members"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    gym_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("gyms.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    gender: Mapped[str | None] = mapped_column(String(16), nullable=True)
    status: Mapped[MemberStatus] = mapped_column(db_enum(MemberStatus), default=MemberStatus.ACTIVE, nullable=False)
    trainer_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("staffs.id"), nullable=True)
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Body composition
    height_cm: Mapped[float | None] = mapped_column(Float, nullable=True)
    weight_kg: Mapped[float | None] = mapped_column(Float, nullable=True)
    body_fat_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    skeletal_muscle_kg: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    trainer = relationship("Staff")
    memberships = relationship("Membership", back_populates="member", order_by="Membership.created_at")

class Membership(Base):
    __tablename__ = "member_memberships"
    __table_args__ = (
        CheckConstraint("used_sessions >= 0", name="ck_member_memberships_used_non_negative"),
        CheckConstraint(
            "total_sessions IS NULL OR used_sessions <= total_sessions",
            name="ck_member_memberships_used_within_total",
        ),
        CheckConstraint(
            "end_date IS NULL OR start_date IS NULL OR end_date >= start_date",
            name="ck_member_memberships_date_order",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    gym_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("gyms.id"), nullable=False, index=True)
    member_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("members.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    membership_type: Mapped[str | None] = mapped_column(String(32), nullable=True) # PT / OT / GX / ...
    total_sessions: Mapped[int | None] = mapped_column(Integer, nullable=True) # None for time-based passes
    used_sessions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[MembershipStatus] = mapped_column(db_enum(MembershipStatus), default=MembershipStatus.ACTIVE, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    member = relationship("Member", back_populates="memberships")

    @property
    def remaining_sessions(self) -> int | None:
        if self.total_sessions is None:
            return None
        return self.total_sessions - (self.used_sessions or 0)

class MembershipHold(Base):
    __tablename__ = "member_membership_holds"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    gym_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("gyms.id"), nullable=False)
    company_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("companies.id"), nullable=False)
    member_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("members.id"), nullable=False, index=True)
    membership_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("member_memberships.id"), nullable=False, index=True)
    hold_days: Mapped[int] = mapped_column(Integer, nullable=False)
    hold_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    hold_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    hold_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    original_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    new_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_by: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("staffs.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
