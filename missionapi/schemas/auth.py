import enum

from pydantic import BaseModel, Field


class ActorRole(str, enum.Enum):
    ADVERTISER = "ADVERTISER"
    MEMBER = "MEMBER"
    ADMIN = "ADMIN"


class Actor(BaseModel):
    """인증된 호출자 - 토큰 클레임에서 복원"""

    user_id: int = Field(..., description="사용자 ID")
    role: ActorRole = Field(..., description="역할")
    profile_id: int = Field(..., description="광고주/회원 프로필 ID (관리자는 사용자 ID)")


class TokenData(BaseModel):
    sub: str
    role: ActorRole
    profile_id: int
