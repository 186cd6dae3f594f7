"""SQLAlchemy declarative base and engine/session helpers."""
