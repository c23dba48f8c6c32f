"""Persistence: SQLite key-value state and the JSON task list."""
