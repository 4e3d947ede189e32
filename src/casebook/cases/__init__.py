"""
Moderation case management.

- **case_ids.py**: Display case ID alphabet, generation, validation and
  collision probability estimates.
- **allocator.py**: Retry-on-collision allocation of globally unique case IDs.
- **case_service.py**: The async API command handlers call.
- **case_stats.py**: Per-guild and per-moderator statistics.
- **errors.py**: Exceptions raised by all of the above.
"""
