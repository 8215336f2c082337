from .base import db, Model, metadata

# Import model modules so tables register with metadata
from .users import User                                   # noqa: F401
from .options import LootOption, ClassRecord, SupplyCounter   # noqa: F401
from .ledger import TokenLot, TokenBalance, OperatorApproval  # noqa: F401
from .audit import AdminAuditLog, OpenEvent               # noqa: F401
from .system import SystemState, Withdrawal, SYSTEM_ROW_ID    # noqa: F401

__all__ = [
    "db", "Model", "metadata",
    "User",
    "LootOption", "ClassRecord", "SupplyCounter",
    "TokenLot", "TokenBalance", "OperatorApproval",
    "AdminAuditLog", "OpenEvent",
    "SystemState", "Withdrawal", "SYSTEM_ROW_ID",
]
