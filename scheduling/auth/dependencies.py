import hmac
import logging

from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from scheduling.auth import jwt_handler
from scheduling.core import config
from scheduling.models.profile import Profile, ProfileRole
from scheduling.routes.common import get_db

logger = logging.getLogger(__name__)

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def _profile_from_token(token: str, db: Session) -> Profile:
    try:
        payload = jwt_handler.decode_access_token(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject or not str(subject).isdigit():
        raise HTTPException(status_code=401, detail="Invalid token subject")

    profile = db.get(Profile, int(subject))
    if profile is None:
        raise HTTPException(status_code=401, detail="Profile not found")
    return profile


def get_current_profile(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Profile:
    return _profile_from_token(credentials.credentials, db)


def require_roles(*roles: ProfileRole):
    def dependency(profile: Profile = Depends(get_current_profile)) -> Profile:
        if profile.role not in roles:
            raise HTTPException(status_code=403, detail="You do not have permission for this action.")
        return profile

    return dependency


def ensure_department_access(profile: Profile, department_id: int) -> None:
    if profile.role == ProfileRole.ADMIN:
        return
    if profile.role == ProfileRole.DEPARTMENT and profile.department_id == department_id:
        return
    raise HTTPException(status_code=403, detail="Only staff of this department can manage it.")


def require_reminder_trigger(
    x_reminder_secret: str | None = Header(default=None),
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_security),
    db: Session = Depends(get_db),
) -> None:
    if x_reminder_secret is not None:
        if config.REMINDER_TRIGGER_SECRET and hmac.compare_digest(x_reminder_secret, config.REMINDER_TRIGGER_SECRET):
            return
        logger.warning("Rejected reminder trigger with an invalid shared secret")
        raise HTTPException(status_code=401, detail="Unauthorized")

    if credentials is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    profile = _profile_from_token(credentials.credentials, db)
    if profile.role != ProfileRole.ADMIN:
        raise HTTPException(status_code=403, detail="Forbidden: admin only")
