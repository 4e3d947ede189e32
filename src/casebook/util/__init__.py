"""
Utility helpers for Casebook.

- **logger.py**: Centralized logging configuration with colored console output,
  rotating file handlers, and per-session log aggregation. Suppresses noise from
  Discord internals and aiosqlite. Uses prompt_toolkit for console output so
  log lines do not break an interactive prompt.
"""
