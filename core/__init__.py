"""Mechanic Shop core: configuration and the SQLite record store."""
