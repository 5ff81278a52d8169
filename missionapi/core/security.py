from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import ValidationError

from missionapi.config import settings
from missionapi.schemas.auth import Actor, ActorRole, TokenData


def create_access_token(
    user_id: int,
    role: ActorRole,
    profile_id: int,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {
        "sub": str(user_id),
        "role": role.value,
        "profile_id": profile_id,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Actor]:
    """JWT 토큰 검증 - 유효하지 않으면 None"""
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
        token_data = TokenData.model_validate(payload)
        return Actor(
            user_id=int(token_data.sub),
            role=token_data.role,
            profile_id=token_data.profile_id,
        )
    except (JWTError, ValidationError, ValueError):
        return None
