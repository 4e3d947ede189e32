"""
Casebook - moderation case management for Discord bots

Casebook keeps the record of every moderation action a bot takes (bans, kicks,
timeouts, warnings, notes and their mass-action variants) and gives command
handlers a small async API over it.

Core Components:

- **Case IDs**: Short, phone-friendly display IDs drawn from a 32-symbol
  alphabet, allocated with a collision check against every stored case
- **Case Service**: Creation, guild-scoped lookup, filtered listing with
  pagination, search, closing, field updates with an audit trail, appeals
- **Statistics**: Per-guild totals and per-moderator breakdowns by case type
- **Storage**: A single long-lived aiosqlite connection with WAL pragmas,
  serialised writes, a TTL query cache and query timing

Usage:
    from casebook.database.database import get_db

    db = get_db()
    await db.initialize()
    case = await db.cases.create_case(draft)
"""
