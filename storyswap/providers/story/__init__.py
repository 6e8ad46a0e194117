"""Story persistence providers.

SQLiteStoryProvider stores stories, their tag links and engagement
counters in data/storyswap.db.
"""
