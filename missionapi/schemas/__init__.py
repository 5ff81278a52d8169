from .auth import Actor, ActorRole
from .ledger import LedgerEntryResponse, BalanceResponse
from .campaign import CampaignResponse, MissionDayResponse
from .participation import ParticipationResponse
from .payout import PayoutResponse
from .order import ProductOrderResponse, PaymentResponse
