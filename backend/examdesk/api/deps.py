from collections.abc import Callable, Generator, Iterable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from examdesk.core.config import get_settings
from examdesk.core.security import decode_token
from examdesk.db.session import SessionLocal
from examdesk.models.user import User, UserRole
from examdesk.repositories.sqlalchemy import SqlAlchemyScheduleStore
from examdesk.scheduling.policy import SchedulePolicy
from examdesk.services.notifications import DatabaseNotifier, Notifier

security = HTTPBearer()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    token = credentials.credentials
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        subject = payload.get("sub")
        if subject is None:
            raise credentials_exception
        user_id = int(subject)
    except (JWTError, ValueError) as exc:
        raise credentials_exception from exc

    user = db.get(User, user_id)
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return user


def require_roles(*roles: UserRole) -> Callable[[User], User]:
    allowed_roles: Iterable[UserRole] = set(roles)

    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user

    return role_checker


def get_schedule_store(db: Session = Depends(get_db)) -> SqlAlchemyScheduleStore:
    return SqlAlchemyScheduleStore(db)


def get_schedule_policy() -> SchedulePolicy:
    return SchedulePolicy.from_settings(get_settings())


def get_notifier() -> Notifier:
    return DatabaseNotifier(SessionLocal)
