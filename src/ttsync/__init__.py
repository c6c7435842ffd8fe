"""
ttsync - Ticket-system maintenance for a time-tracking application.

Keeps project subticket lists in sync with Jira, stores ticket-system tokens
encrypted, and caches expensive lookups behind a tag-invalidated cache.
"""

__version__ = "1.0.0"
