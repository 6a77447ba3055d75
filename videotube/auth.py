from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from bson import ObjectId
from videotube.config import settings
from videotube.database import get_store
from videotube.models import USERS
from videotube.pipeline.predicates import Eq
from videotube.viewer import Viewer

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def _resolve_viewer(token: str) -> Optional[Viewer]:
    """Decode a bearer token into a Viewer, or None if it doesn't identify a user"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    user_id = payload.get("sub")
    if not user_id or not ObjectId.is_valid(user_id):
        return None

    user = await get_store().find_one(USERS, Eq("_id", ObjectId(user_id)))
    if user is None:
        return None
    return Viewer.authenticated(user["_id"], user.get("username"))


async def get_current_viewer(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Viewer:
    viewer = await _resolve_viewer(credentials.credentials)
    if viewer is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return viewer


async def get_viewer(credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security)) -> Viewer:
    """Optional authentication - anonymous Viewer when no valid token is sent"""
    if not credentials:
        return Viewer.anonymous()
    return await _resolve_viewer(credentials.credentials) or Viewer.anonymous()
