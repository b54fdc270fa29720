"""
Dairy Kernel - settlement and reconciliation core

Ledger bookkeeping between a dairy owner and its farmers and members:
- Dated, rated line items with derived amounts
- Carried-forward running balances per counterparty
- Period aggregation of unpaid items and pending advances
- Atomic settlement commits with an immutable audit snapshot
"""

__version__ = "0.1.0"
