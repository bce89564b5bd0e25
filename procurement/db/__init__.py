"""Relational storage: declarative models, engine and transactional scopes."""
