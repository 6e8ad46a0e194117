"""Location and tag persistence providers.

SQLitePlaceProvider stores locations (deduplicated within a merge radius)
and tags (deduplicated by normalized name) in data/storyswap.db.
"""
