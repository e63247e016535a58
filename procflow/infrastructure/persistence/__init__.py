"""Persistence: database session, ORM models and repositories."""
