"""
Bill Tracker - Source Package

Tracks recurring and one-time bills per user, records payments against
them, and derives each bill's due/paid status on every read.

PRINCIPLES:
1. Derived status is computed at read time, never stored
2. Every query is scoped to the authenticated user
3. Validation happens before any write
4. Exactly one registrant is ever granted the admin role
"""

__version__ = "1.0.0"
__author__ = "Bill Tracker Team"
