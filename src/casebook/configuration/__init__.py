"""
Configuration management for Casebook.

- **app_configuration.py**: File-lock based YAML loader for global settings.
  Falls back to an empty mapping on missing or malformed config files.

- **case_settings.py**: Typed accessors for the ``cases`` section (retry
  budgets, page size, cache TTL, slow-query threshold) with the documented defaults.
"""
