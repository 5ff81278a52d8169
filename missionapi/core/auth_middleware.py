import hmac
from typing import Callable, Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from missionapi.config import settings
from missionapi.core.exceptions import AuthenticationError, AuthorizationError
from missionapi.core.security import decode_access_token
from missionapi.schemas.auth import Actor, ActorRole

# JWT Bearer 토큰 스킴
security = HTTPBearer(auto_error=False)


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Actor:
    """필수 인증 - 유효한 토큰이 필요함"""
    if not credentials:
        raise AuthenticationError()

    actor = decode_access_token(credentials.credentials)
    if not actor:
        raise AuthenticationError("Invalid or expired token")
    return actor


def require_role(*roles: ActorRole) -> Callable[..., Actor]:
    """지정된 역할만 허용하는 의존성 팩토리"""

    def _require(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise AuthorizationError(
                f"{' or '.join(r.value for r in roles)} role required",
                details={"role": actor.role.value},
            )
        return actor

    return _require


require_advertiser = require_role(ActorRole.ADVERTISER)
require_member = require_role(ActorRole.MEMBER)
require_admin = require_role(ActorRole.ADMIN)


def _secret_matches(expected: str, provided: Optional[str]) -> bool:
    if not expected or not provided:
        return False
    return hmac.compare_digest(expected.encode(), provided.encode())


def verify_cron_secret(x_cron_secret: Optional[str] = Header(None)) -> None:
    """운영 환경에서는 CRON_SECRET 일치 필요"""
    if not settings.is_production:
        return
    if not _secret_matches(settings.CRON_SECRET, x_cron_secret):
        raise AuthenticationError("Invalid cron secret")


def verify_webhook_secret(x_webhook_secret: Optional[str] = Header(None)) -> None:
    """
    결제 웹훅 공유 비밀 검증

    운영 환경에서는 PAYMENT_WEBHOOK_SECRET 이 비어 있어도 거부한다.
    그 외 환경에서는 비밀이 설정된 경우에만 검사.
    """
    if not settings.PAYMENT_WEBHOOK_SECRET and not settings.is_production:
        return
    if not _secret_matches(settings.PAYMENT_WEBHOOK_SECRET, x_webhook_secret):
        raise AuthenticationError("Invalid webhook secret")
