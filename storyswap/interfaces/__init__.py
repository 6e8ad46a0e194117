"""Persistence contracts for StorySwap.

Services depend only on these ABCs; SQLite adapters in
``storyswap/providers/`` implement them and are injected in
``storyswap/main.py``.  Tests inject temporary SQLite files or mocks.

    Interface        →  Concrete implementation
    ──────────────────────────────────────────────────────────
    IStoryProvider   →  SQLiteStoryProvider
    IPlaceProvider   →  SQLitePlaceProvider
    ISwapProvider    →  SQLiteSwapProvider
    IUserProvider    →  SQLiteUserProvider
"""

from storyswap.interfaces.place_provider import IPlaceProvider
from storyswap.interfaces.story_provider import IStoryProvider
from storyswap.interfaces.swap_provider import ISwapProvider
from storyswap.interfaces.user_provider import IUserProvider

__all__ = ["IPlaceProvider", "IStoryProvider", "ISwapProvider", "IUserProvider"]
