"""Per-user counter providers.

SQLiteUserProvider keeps stories_published, stories_unlocked and
swaps_completed for each user id in data/storyswap.db.
"""
