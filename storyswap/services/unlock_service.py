"""Decides whether a reader may see a story's full content.

Rules, first match wins:

    reader is the author             -> unlocked (author)
    story does not require a swap    -> unlocked (no_swap_required)
    story is not locked              -> unlocked (not_locked)
    reader completed a swap for it   -> unlocked (swap_completed)
    otherwise                        -> locked   (swap_required)

Anonymous readers (``user_id`` None) are never the author and never hold
a swap.  ``redact`` produces the view shown to a reader who is locked out.
"""

from __future__ import annotations

from storyswap.interfaces.swap_provider import ISwapProvider
from storyswap.models.story import Story, TextBody
from storyswap.models.swap import SwapStatus, UnlockDecision, UnlockReason


class UnlockService:
    def __init__(self, swap_store: ISwapProvider) -> None:
        self._swap_store = swap_store

    async def can_view(self, story: Story, user_id: str | None) -> UnlockDecision:
        if user_id is not None and story.author_id == user_id:
            return UnlockDecision(unlocked=True, reason=UnlockReason.AUTHOR)
        if not story.swap_settings.requires_swap:
            return UnlockDecision(unlocked=True, reason=UnlockReason.NO_SWAP_REQUIRED)
        if not story.swap_settings.is_locked:
            return UnlockDecision(unlocked=True, reason=UnlockReason.NOT_LOCKED)

        if user_id is not None:
            swap = await self._swap_store.find_swap(user_id, story.story_id)
            if swap is not None and swap.status == SwapStatus.COMPLETED:
                return UnlockDecision(unlocked=True, reason=UnlockReason.SWAP_COMPLETED)

        return UnlockDecision(unlocked=False, reason=UnlockReason.SWAP_REQUIRED)

    @staticmethod
    def redact(story: Story) -> Story:
        """Copy of ``story`` with media removed and the body replaced by its snippet."""
        snippet = story.content.snippet
        text = TextBody(body=snippet, word_count=len(snippet.split())) if snippet else None
        content = story.content.model_copy(update={"text": text, "media": []})
        return story.model_copy(update={"content": content})
