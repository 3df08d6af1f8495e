"""Money market engine components."""

from .configurator import Configurator
from .guard import OperationGuard
from .interest import InterestRateModel
from .ledger import PrincipalLedger
from .liquidation import LiquidationEngine
from .market import MoneyMarket
from .pause import PauseGate
from .rewards import RewardConfig, RewardsDistributor
from .risk import FactorKind, PartialLiquidationPlan, RiskEvaluator, SplitPolicy

__all__ = [
    "Configurator",
    "OperationGuard",
    "InterestRateModel",
    "PrincipalLedger",
    "LiquidationEngine",
    "MoneyMarket",
    "PauseGate",
    "RewardConfig",
    "RewardsDistributor",
    "FactorKind",
    "PartialLiquidationPlan",
    "RiskEvaluator",
    "SplitPolicy",
]
