from dependency_injector import containers, providers

from missionapi.config import Settings
from missionapi.database.connection import SessionLocal
from missionapi.services.campaign_service import CampaignService
from missionapi.services.ledger_service import LedgerService
from missionapi.services.mission_service import MissionService
from missionapi.services.order_service import OrderService
from missionapi.services.payout_service import PayoutService


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class RepositoryModule(containers.DeclarativeContainer):
    """Database session factory (one session per resolved service)."""

    db = providers.Factory(SessionLocal)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies."""

    config = providers.DependenciesContainer()
    repositories = providers.DependenciesContainer()

    ledger_service = providers.Factory(LedgerService, db=repositories.db)
    order_service = providers.Factory(OrderService, db=repositories.db, settings=config.config)
    campaign_service = providers.Factory(CampaignService, db=repositories.db)
    mission_service = providers.Factory(MissionService, db=repositories.db, settings=config.config)
    payout_service = providers.Factory(PayoutService, db=repositories.db, settings=config.config)


class Container(containers.DeclarativeContainer):
    """Application container - 요청 밖(스크립트/배치)에서 서비스를 조립할 때 사용"""

    config = providers.Container(ConfigModule)
    repositories = providers.Container(RepositoryModule)
    services = providers.Container(
        ServiceModule, config=config, repositories=repositories
    )
