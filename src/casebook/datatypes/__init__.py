"""
Data structures shared across Casebook.

- **discord_datatypes.py**: Validated wrappers for guild, user, channel and
  message snowflakes.
- **case_datatypes.py**: Case enums (type, status, editable field, appeal
  decision) and the dataclasses exchanged with the case service.
"""
