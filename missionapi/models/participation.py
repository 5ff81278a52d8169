import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Enum,
    ForeignKey,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.schema import Index

from missionapi.models.base import BaseModel, IdType


class ParticipationStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    PENDING_REVIEW = "PENDING_REVIEW"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    CANCELED = "CANCELED"


# 동일 (mission_day, rewarder) 조합에 하나만 허용되는 진행 중 상태
ACTIVE_PARTICIPATION_STATUSES = (
    ParticipationStatus.IN_PROGRESS,
    ParticipationStatus.PENDING_REVIEW,
    ParticipationStatus.MANUAL_REVIEW,
)

TERMINAL_PARTICIPATION_STATUSES = (
    ParticipationStatus.APPROVED,
    ParticipationStatus.REJECTED,
    ParticipationStatus.EXPIRED,
    ParticipationStatus.CANCELED,
)


class EvidenceType(str, enum.Enum):
    SCREENSHOT = "SCREENSHOT"
    URL = "URL"
    TEXT = "TEXT"


class Participation(BaseModel):
    __tablename__ = "participations"
    __table_args__ = (
        Index("ix_participations_day_rewarder", "mission_day_id", "rewarder_id"),
        Index("ix_participations_status_expires", "status", "expires_at"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    mission_day_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("mission_days.id"), nullable=False
    )
    rewarder_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    status: Mapped[ParticipationStatus] = mapped_column(
        Enum(ParticipationStatus, native_enum=False, length=20),
        default=ParticipationStatus.IN_PROGRESS,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    decided_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    mission_day = relationship("MissionDay")
    evidences = relationship("VerificationEvidence", back_populates="participation")


class VerificationEvidence(BaseModel):
    __tablename__ = "verification_evidences"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    participation_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("participations.id"), nullable=False, index=True
    )
    type: Mapped[EvidenceType] = mapped_column(
        Enum(EvidenceType, native_enum=False, length=20), nullable=False
    )
    # 업로드 저장소는 외부 - 여기에는 참조 문자열만 저장
    file_ref: Mapped[str] = mapped_column(String(1024), nullable=False)
    metadata_json: Mapped[Optional[dict]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=True
    )

    participation = relationship("Participation", back_populates="evidences")
