from fastapi import Depends
from sqlalchemy.orm import Session

from missionapi.config import settings
from missionapi.database.session import get_db

# Services
from missionapi.services.campaign_service import CampaignService
from missionapi.services.ledger_service import LedgerService
from missionapi.services.mission_service import MissionService
from missionapi.services.order_service import OrderService
from missionapi.services.payout_service import PayoutService


def get_ledger_service(db: Session = Depends(get_db)) -> LedgerService:
    return LedgerService(db=db)


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db=db, settings=settings)


def get_campaign_service(db: Session = Depends(get_db)) -> CampaignService:
    return CampaignService(db=db)


def get_mission_service(db: Session = Depends(get_db)) -> MissionService:
    return MissionService(db=db, settings=settings)


def get_payout_service(db: Session = Depends(get_db)) -> PayoutService:
    return PayoutService(db=db, settings=settings)
