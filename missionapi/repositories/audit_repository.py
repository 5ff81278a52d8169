from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from missionapi.models.audit import AuditLog


class AuditRepository:
    """감사 로그 기록 - 호출한 연산과 같은 트랜잭션에 포함"""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        action: str,
        actor_id: Optional[int] = None,
        target_type: Optional[str] = None,
        target_id: Any = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        log = AuditLog(
            actor_id=actor_id,
            action=action,
            target_type=target_type,
            target_id=str(target_id) if target_id is not None else None,
            payload=payload,
        )
        self.db.add(log)
        self.db.flush()
        return log
