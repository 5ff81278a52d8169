"""
원장 리포지토리 - 예산/적립금 원장의 기록 및 잔액 계산

핵심 특징:
- 원장은 추가 전용(append-only) - 수정/삭제 메서드를 제공하지 않습니다
- (reason, ref_id) 유니크 제약 + ON CONFLICT DO NOTHING 으로 멱등 기록
- 잔액은 저장하지 않고 매번 amount_krw 합계로 계산합니다
"""

import enum
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple, Union

from sqlalchemy import desc, func, select, tuple_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from missionapi.models.ledger import LEDGER_MODELS, LedgerKind
from missionapi.repositories.base import BaseRepository
from missionapi.schemas.ledger import (
    AppendResult,
    LedgerEntryCreate,
    LedgerEntryResponse,
)
from missionapi.utils.date_utils import utcnow

ReasonType = Union[str, enum.Enum]


def _reason_value(reason: ReasonType) -> str:
    return reason.value if isinstance(reason, enum.Enum) else str(reason)


class LedgerRepository(BaseRepository):
    """
    원장 리포지토리 - 예산(BUDGET)과 적립금(CREDIT) 원장이 같은 구현을 공유

    1. 멱등성 - 같은 (reason, ref_id) 는 한 번만 기록되고 재시도는 기존 항목을 돌려줌
    2. 원자성 - 호출자의 트랜잭션 안에서만 기록 (flush 만 수행)
    3. 감사 추적 - 모든 변동이 사유와 참조 ID 와 함께 남음
    """

    def __init__(self, db: Session, kind: LedgerKind):
        super().__init__(LEDGER_MODELS[kind], LedgerEntryResponse, db)
        self.kind = kind

    def _insert(self):
        """dialect 에 맞는 INSERT 생성자 (ON CONFLICT 지원)"""
        dialect_name = self.db.get_bind().dialect.name
        if dialect_name == "postgresql":
            return postgresql.insert(self.model_class)
        if dialect_name == "sqlite":
            return sqlite.insert(self.model_class)
        raise NotImplementedError(
            f"Ledger append is not supported on dialect '{dialect_name}'"
        )

    def append(
        self,
        owner_id: int,
        amount_krw: int,
        reason: ReasonType,
        ref_id: Optional[str] = None,
    ) -> AppendResult:
        """원장 항목 1건 기록 (멱등)

        Returns:
            AppendResult: created=False 이면 같은 (reason, ref_id) 항목이 이미 있었음
        """
        return self.append_many(
            [
                LedgerEntryCreate(
                    owner_id=owner_id,
                    amount_krw=amount_krw,
                    reason=_reason_value(reason),
                    ref_id=ref_id,
                )
            ]
        )[0]

    def append_many(self, entries: Sequence[LedgerEntryCreate]) -> List[AppendResult]:
        """
        여러 원장 항목을 한 문장으로 기록 - 중복 키는 건너뜀

        ref_id 가 없는 항목은 멱등 키가 없으므로 항상 새로 기록됩니다.
        결과는 입력 순서를 그대로 따릅니다.
        """
        if not entries:
            return []

        keyed = [e for e in entries if e.ref_id is not None]
        results: Dict[int, AppendResult] = {}

        if keyed:
            rows = [
                {
                    "owner_id": e.owner_id,
                    "amount_krw": e.amount_krw,
                    "reason": e.reason,
                    "ref_id": e.ref_id,
                    "created_at": utcnow(),
                }
                for e in keyed
            ]
            stmt = (
                self._insert()
                .values(rows)
                .on_conflict_do_nothing(index_elements=["reason", "ref_id"])
                .returning(self.model_class.id)
            )
            inserted_ids = set(self.db.scalars(stmt).all())

            keys = list({(e.reason, e.ref_id) for e in keyed})
            stored = self.db.scalars(
                select(self.model_class).where(
                    tuple_(self.model_class.reason, self.model_class.ref_id).in_(keys)
                )
            ).all()
            by_key = {(row.reason, row.ref_id): row for row in stored}

            seen_created = set()
            for index, entry in enumerate(entries):
                if entry.ref_id is None:
                    continue
                row = by_key[(entry.reason, entry.ref_id)]
                # 한 배치 안에서 같은 키가 반복되면 첫 번째만 created
                created = row.id in inserted_ids and row.id not in seen_created
                seen_created.add(row.id)
                results[index] = AppendResult(entry=self.to_schema(row), created=created)

        for index, entry in enumerate(entries):
            if entry.ref_id is not None:
                continue
            row = self.add(
                self.model_class(
                    owner_id=entry.owner_id,
                    amount_krw=entry.amount_krw,
                    reason=entry.reason,
                    ref_id=None,
                    created_at=utcnow(),
                )
            )
            results[index] = AppendResult(entry=self.to_schema(row), created=True)

        return [results[index] for index in range(len(entries))]

    def get_entry(self, reason: ReasonType, ref_id: str) -> Optional[LedgerEntryResponse]:
        """멱등 키로 기존 항목 조회"""
        row = self.db.scalars(
            select(self.model_class).where(
                self.model_class.reason == _reason_value(reason),
                self.model_class.ref_id == ref_id,
            )
        ).first()
        return self.to_schema(row)

    def get_balance(self, owner_id: int) -> int:
        """잔액 = 소유자의 모든 amount_krw 합계 (항목이 없으면 0)"""
        total = self.db.scalar(
            select(func.coalesce(func.sum(self.model_class.amount_krw), 0)).where(
                self.model_class.owner_id == owner_id
            )
        )
        return int(total or 0)

    def get_history(
        self, owner_id: int, limit: int = 50, offset: int = 0
    ) -> Tuple[List[LedgerEntryResponse], int]:
        """소유자의 원장 내역 (최신순) 과 전체 건수"""
        total_count = self.count({"owner_id": owner_id})
        rows = self.db.scalars(
            select(self.model_class)
            .where(self.model_class.owner_id == owner_id)
            .order_by(desc(self.model_class.id))
            .offset(offset)
            .limit(limit)
        ).all()
        return self.to_schemas(rows), total_count

    def verify_integrity(self, owner_id: int) -> Dict[str, int]:
        """
        SQL 합계와 항목 순회 합계를 비교하고 중복 멱등 키를 센다

        Returns:
            dict: aggregated_balance_krw, folded_balance_krw, entry_count, duplicate_keys
        """
        aggregated = self.get_balance(owner_id)
        rows = self.db.execute(
            select(
                self.model_class.amount_krw,
                self.model_class.reason,
                self.model_class.ref_id,
            )
            .where(self.model_class.owner_id == owner_id)
            .order_by(self.model_class.id)
        ).all()

        folded = 0
        for amount_krw, _, _ in rows:
            folded += amount_krw

        key_counts = Counter(
            (reason, ref_id) for _, reason, ref_id in rows if ref_id is not None
        )
        duplicate_keys = sum(1 for count in key_counts.values() if count > 1)

        return {
            "aggregated_balance_krw": aggregated,
            "folded_balance_krw": folded,
            "entry_count": len(rows),
            "duplicate_keys": duplicate_keys,
        }
