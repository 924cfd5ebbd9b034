# ============================================================================
# DISPATCHER MODULE
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - Ledger to calculator delivery loop
# PURPOSE: Deliver appended ledger events to the carbon calculator
# CREATED: 06 OCT 2026
# ============================================================================
"""
Dispatcher Module

The polling loop that feeds calculable ledger events to the carbon
calculator.

Usage:
    from dispatcher import LedgerDispatcher

    dispatcher = LedgerDispatcher(event_repo, calculator)
    ledger.subscribe(dispatcher.notify)
    await dispatcher.start()
"""

from .loop import LedgerDispatcher, run_single_cycle

__all__ = ["LedgerDispatcher", "run_single_cycle"]
