"""
Costing Kernel

Inventory costing and pricing engine for small-batch production:
- Append-only stock ledgers for raw materials and finished goods
- Weighted-average raw material valuation
- Recipe cost rollup and finished-good pricing
- Atomic production and sale transactions
"""

__version__ = "0.1.0"
