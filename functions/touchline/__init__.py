"""
Touchline backend package.

Provides a FastAPI application for the in-app help system and roster
management, with database, queue and change-feed abstractions so the same
code runs against Postgres/Redis in production and in-memory backends in
tests.
"""
