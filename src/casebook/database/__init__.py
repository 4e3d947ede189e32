"""
Database package for Casebook.

Provides the case store runtime: a single aiosqlite connection with
serialised writes, schema creation, a TTL query cache and query timing.

Public API (casebook.database.database):
    - database: Global Database instance
    - get_db: Get the global Database instance
    - Database: Main database management class
"""
