from abc import ABC
from typing import Any, Dict, Generic, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

T = TypeVar("T")
SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseRepository(Generic[T, SchemaType], ABC):
    """모든 리포지토리의 베이스 클래스

    - 조회 결과는 Pydantic 스키마로 변환해 반환 (`to_schema`)
    - 상태 변경은 조건부 UPDATE 로만 수행 (`_conditional_update`)
    - commit 은 하지 않음 - 트랜잭션 경계는 서비스의 `atomic()` 이 담당
    """

    def __init__(
        self, model_class: Type[T], schema_class: Type[SchemaType], db: Session
    ):
        self.model_class = model_class
        self.schema_class = schema_class
        self.db = db

    def to_schema(self, model_instance: Any) -> Optional[SchemaType]:
        """SQLAlchemy 모델을 Pydantic 스키마로 변환"""
        if model_instance is None:
            return None
        return self.schema_class.model_validate(model_instance)

    def to_schemas(self, model_instances: Iterable[Any]) -> List[SchemaType]:
        return [self.to_schema(instance) for instance in model_instances]

    def get_model(self, id: Any, refresh: bool = False) -> Optional[T]:
        """ID로 모델 조회

        refresh=True 이면 identity map 을 무시하고 DB 값으로 다시 채운다
        (조건부 UPDATE 직후 최신 상태가 필요할 때).
        """
        return self.db.get(self.model_class, id, populate_existing=refresh)

    def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        stmt = select(func.count()).select_from(self.model_class)
        if filters:
            for key, value in filters.items():
                if hasattr(self.model_class, key):
                    stmt = stmt.where(getattr(self.model_class, key) == value)
        return int(self.db.scalar(stmt) or 0)

    def add(self, instance: T) -> T:
        """새 레코드 추가 후 flush (PK 확보)"""
        self.db.add(instance)
        self.db.flush()
        return instance

    def _conditional_update(self, conditions: list, values: Dict[str, Any]) -> int:
        """WHERE 조건이 맞는 행만 갱신하고 영향받은 행 수를 반환"""
        stmt = (
            update(self.model_class)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return result.rowcount or 0
