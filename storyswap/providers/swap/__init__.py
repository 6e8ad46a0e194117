"""Swap persistence providers.

SQLiteSwapProvider stores swaps in data/storyswap.db.  The schema enforces
one swap per (user, story) pair with a UNIQUE constraint.
"""
