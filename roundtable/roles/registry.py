"""The fixed set of roles seated at every session."""

from roundtable.roles.base import RoleAgent
from roundtable.roles.execution_trader import ExecutionTrader
from roundtable.roles.portfolio_manager import PortfolioManager
from roundtable.roles.risk_manager import RiskManager
from roundtable.roles.sentiment_analyst import SentimentAnalyst
from roundtable.roles.strategist import ChiefStrategist
from roundtable.roles.technical_analyst import TechnicalAnalyst
from roundtable.router import ChatClient

ROLE_CLASSES: tuple[type[RoleAgent], ...] = (
    ChiefStrategist,
    TechnicalAnalyst,
    RiskManager,
    ExecutionTrader,
    SentimentAnalyst,
    PortfolioManager,
)


def create_roles(chat: ChatClient, role_providers: dict[str, str] | None = None) -> list[RoleAgent]:
    """Instantiate all six roles, applying per-role provider overrides."""
    role_providers = role_providers or {}
    return [cls(chat, preferred_provider=role_providers.get(cls.role_id)) for cls in ROLE_CLASSES]
