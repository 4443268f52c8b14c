"""Local expense tracking: SQLite persistence, month aggregation and a CLI."""
