from dataclasses import dataclass
from typing import Annotated
import uuid

from fastapi import Depends, Query
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backoffice.config import settings
from backoffice.core.exceptions import BadRequestError, ForbiddenError, NotFoundError, UnauthorizedError
from backoffice.database import get_db
from backoffice.models.tenant import Gym, Staff
from backoffice.auth.schemas import TokenPayload
from backoffice.models.enums import StaffRole

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login", auto_error=False)

ADMIN_ROLES = (StaffRole.SYSTEM_ADMIN, StaffRole.COMPANY_ADMIN, StaffRole.ADMIN)


def _coerce_role(value: StaffRole | str) -> StaffRole:
    return value if isinstance(value, StaffRole) else StaffRole(value)


def is_admin(role: StaffRole | str) -> bool:
    return _coerce_role(role) in ADMIN_ROLES


def can_access_company(staff: Staff, company_id: uuid.UUID) -> bool:
    if _coerce_role(staff.role) == StaffRole.SYSTEM_ADMIN:
        return True
    if not staff.company_id:
        return False
    return staff.company_id == company_id


def can_access_gym(staff: Staff, gym_id: uuid.UUID, gym_company_id: uuid.UUID | None = None) -> bool:
    role = _coerce_role(staff.role)
    if role == StaffRole.SYSTEM_ADMIN:
        return True
    if role == StaffRole.COMPANY_ADMIN:
        # Company admins see every gym of their own company.
        return staff.company_id == gym_company_id if gym_company_id else True
    if not staff.gym_id:
        return False
    return staff.gym_id == gym_id


async def authenticate_request(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Staff:
    """Resolve the calling staff member from the bearer token."""
    credentials_exception = UnauthorizedError(
        "로그인이 필요합니다.",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        token_data = TokenPayload(**payload)
    except JWTError:
        raise credentials_exception
    if token_data.sub is None or token_data.type != "access":
        raise credentials_exception

    stmt = select(Staff).where(Staff.email == token_data.sub)
    result = await db.execute(stmt)
    staff = result.scalar_one_or_none()

    if staff is None or not staff.is_active:
        raise credentials_exception
    staff.role = _coerce_role(staff.role)
    return staff


@dataclass(frozen=True)
class GymScope:
    """Explicit tenant scope for one request: who is asking, and for which gym."""

    staff: Staff
    company_id: uuid.UUID
    gym_id: uuid.UUID


async def get_gym_scope(
    staff: Annotated[Staff, Depends(authenticate_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
    gym_id: Annotated[uuid.UUID | None, Query()] = None,
) -> GymScope:
    target_gym_id = gym_id or staff.gym_id
    if target_gym_id is None:
        raise BadRequestError("지점 정보가 필요합니다.")

    gym = await db.get(Gym, target_gym_id)
    if gym is None:
        raise NotFoundError("지점을 찾을 수 없습니다.")
    if not can_access_gym(staff, gym.id, gym.company_id):
        raise ForbiddenError("접근 권한이 없습니다.")
    return GymScope(staff=staff, company_id=gym.company_id, gym_id=gym.id)
