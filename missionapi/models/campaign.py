import enum
import datetime as dt

from sqlalchemy import BigInteger, Date, Enum, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.schema import CheckConstraint, UniqueConstraint

from missionapi.models.base import BaseModel, IdType


class MissionType(str, enum.Enum):
    TRAFFIC = "TRAFFIC"
    SAVE = "SAVE"
    SHARE = "SHARE"


class CampaignStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    ENDED = "ENDED"


class MissionDayStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    ENDED = "ENDED"


class Campaign(BaseModel):
    __tablename__ = "campaigns"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    advertiser_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    mission_type: Mapped[MissionType] = mapped_column(
        Enum(MissionType, native_enum=False, length=20), nullable=False
    )
    start_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    end_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    daily_target: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_krw: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_krw: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[CampaignStatus] = mapped_column(
        Enum(CampaignStatus, native_enum=False, length=20),
        default=CampaignStatus.DRAFT,
        nullable=False,
    )

    mission_days = relationship("MissionDay", back_populates="campaign")


class MissionDay(BaseModel):
    """
    캠페인의 일자별 수행 한도

    불변식: 0 <= quota_remaining <= quota_total
    차감은 항상 조건부 UPDATE (quota_remaining > 0) 로만 수행합니다.
    """

    __tablename__ = "mission_days"
    __table_args__ = (
        UniqueConstraint("campaign_id", "date", name="uq_mission_days_campaign_date"),
        CheckConstraint(
            "quota_remaining >= 0 AND quota_remaining <= quota_total",
            name="ck_mission_days_quota_range",
        ),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("campaigns.id"), nullable=False
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    quota_total: Mapped[int] = mapped_column(Integer, nullable=False)
    quota_remaining: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[MissionDayStatus] = mapped_column(
        Enum(MissionDayStatus, native_enum=False, length=20),
        default=MissionDayStatus.ACTIVE,
        nullable=False,
    )

    campaign = relationship("Campaign", back_populates="mission_days")

    def __repr__(self) -> str:
        return f"<MissionDay {self.campaign_id}@{self.date} {self.quota_remaining}/{self.quota_total}>"
