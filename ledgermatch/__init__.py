"""
ledgermatch - bank statement match suggestion engine.

Proposes, for each unreconciled bank entry, the single best ledger match
(loan repayment or disbursement, investor deposit or withdrawal, expense)
or a classification for creating a new transaction.
"""

__version__ = "1.0.0"
