"""finlink: Open-Finance connection sync engine.

This package keeps a local DuckDB snapshot of an end-user's financial
connections in step with an Open-Finance aggregator (Pluggy):
- Provider client for items, accounts, transactions, investments, loans,
  credit card bills and identity
- Idempotent upserts keyed on provider ids
- Sync passes that contain failures per entity branch
- Webhook routing that turns provider events into targeted syncs

All synchronized data is stored locally in DuckDB.
"""

__version__ = "0.1.0"
