"""
Cost estimation and budget admission.

Every model call is admitted against the tenant's monthly budget with a
reserve / commit-or-release protocol.
"""

from .admission import AdmissionController, Reservation
from .ledger import BudgetLedger, BudgetSnapshot, SQLBudgetLedger
from .pricing import CostEstimate, PricingTable, TierPricing, estimate_tokens

__all__ = [
    "AdmissionController",
    "Reservation",
    "BudgetLedger",
    "BudgetSnapshot",
    "SQLBudgetLedger",
    "CostEstimate",
    "PricingTable",
    "TierPricing",
    "estimate_tokens",
]
