import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from sqlalchemy import String, ForeignKey, DateTime, Date, Integer, Numeric, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from backoffice.database import Base

class ActivityLog(Base):
    __tablename__ = "member_activity_logs"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    gym_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("gyms.id"), nullable=False)
    company_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("companies.id"), nullable=True)
    member_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("members.id"), nullable=False, index=True)
    membership_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True) # plain id, the membership may be deleted later
    action_type: Mapped[str] = mapped_column(String(64), nullable=False) # e.g. "membership_transferred"
    description: Mapped[str] = mapped_column(Text, nullable=False)
    changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True) # before/after snapshots
    created_by: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("staffs.id"), nullable=True) # Nullable for system actions
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

class MembershipTransfer(Base):
    __tablename__ = "member_membership_transfers"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    gym_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("gyms.id"), nullable=False)
    company_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("companies.id"), nullable=False)
    from_member_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("members.id"), nullable=False, index=True)
    from_membership_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("member_memberships.id"), nullable=False)
    to_member_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("members.id"), nullable=False, index=True)
    to_membership_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("member_memberships.id"), nullable=False)
    transferred_sessions: Mapped[int] = mapped_column(Integer, nullable=False)
    transfer_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    payment_method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    transfer_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    transfer_date: Mapped[date] = mapped_column(Date, nullable=False)
    original_membership_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_by: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("staffs.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    from_member = relationship("Member", foreign_keys=[from_member_id])
    to_member = relationship("Member", foreign_keys=[to_member_id])
    from_membership = relationship("Membership", foreign_keys=[from_membership_id])
    created_by_staff = relationship("Staff", foreign_keys=[created_by])
