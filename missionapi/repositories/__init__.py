from .base import BaseRepository
from .ledger_repository import LedgerRepository
from .mission_day_repository import MissionDayRepository
from .campaign_repository import CampaignRepository
from .participation_repository import ParticipationRepository
from .payout_repository import PayoutRepository
from .order_repository import OrderRepository, PaymentRepository
from .audit_repository import AuditRepository

__all__ = [
    "BaseRepository",
    "LedgerRepository",
    "MissionDayRepository",
    "CampaignRepository",
    "ParticipationRepository",
    "PayoutRepository",
    "OrderRepository",
    "PaymentRepository",
    "AuditRepository",
]
