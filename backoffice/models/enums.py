from enum import Enum

from sqlalchemy import Enum as SAEnum


class StaffRole(str, Enum):
    SYSTEM_ADMIN = "system_admin"
    COMPANY_ADMIN = "company_admin"
    ADMIN = "admin"
    STAFF = "staff"

class MemberStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    EXPIRED = "expired"

class MembershipStatus(str, Enum):
    ACTIVE = "active"
    FINISHED = "finished"
    EXPIRED = "expired"

class ScheduleStatus(str, Enum):
    RESERVED = "reserved"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    NO_SHOW_DEDUCTED = "no_show_deducted"
    SERVICE = "service"
    CANCELLED = "cancelled"

class ActivityAction(str, Enum):
    MEMBER_CREATED = "member_created"
    MEMBER_UPDATED = "member_updated"
    MEMBERSHIP_CREATED = "membership_created"
    MEMBERSHIP_UPDATED = "membership_updated"
    MEMBERSHIP_DELETED = "membership_deleted"
    MEMBERSHIP_TRANSFERRED = "membership_transferred"
    MEMBERSHIP_HOLD = "membership_hold"


def db_enum(enum_cls: type[Enum]) -> SAEnum:
    # Persist the lowercase values, not the member names.
    return SAEnum(
        enum_cls,
        native_enum=False,
        values_callable=lambda members: [member.value for member in members],
        length=32,
    )
