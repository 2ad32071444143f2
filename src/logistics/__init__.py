"""
Logistics services for route scheduling and stock reconciliation.

This module contains:
- StockLedger: Per-zone stock with reserve / commit / release / credit
- CapacityPlanner: Truck capacity checks for route loads
- RouteScheduler: Route lifecycle, destinations, products and schedules
- DonationReconciler: Donation linking and crediting on route completion
- EligibilityGate: Volunteer skill checks
"""

from .capacity import CapacityCheck, CapacityPlanner
from .core import LogisticsCore, build_logistics_core
from .eligibility import EligibilityGate
from .reconciler import DonationReconciler
from .scheduler import RouteScheduler
from .stock_ledger import StockLedger

__all__ = [
    "CapacityCheck",
    "CapacityPlanner",
    "DonationReconciler",
    "EligibilityGate",
    "LogisticsCore",
    "RouteScheduler",
    "StockLedger",
    "build_logistics_core",
]
