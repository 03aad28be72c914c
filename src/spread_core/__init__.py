"""Spread-bet position settlement: calculator, collateral ledger, store, grading."""
