from backoffice.models.tenant import Company, Gym, Staff
from backoffice.models.member import Member, Membership, MembershipHold
from backoffice.models.audit import ActivityLog, MembershipTransfer
from backoffice.models.finance import Payment, SalesLog
from backoffice.models.schedule import Attendance, Schedule


__all__ = [
    "Company",
    "Gym",
    "Staff",
    "Member",
    "Membership",
    "MembershipHold",
    "ActivityLog",
    "MembershipTransfer",
    "Payment",
    "SalesLog",
    "Schedule",
    "Attendance",
]
