"""Submission rule checks for a swap, independent of storage.

Pure functions:

1. ``build_validation_snapshot`` derives the facts recorded on the swap
   (content length, location, media presence).
2. ``validate_submission`` compares those facts against the target
   story's requirements and returns human-readable violations, in a fixed
   order.  An empty list means the submission may proceed to moderation.
3. ``clean_submission`` strips markup from user text before it is stored.
"""

from __future__ import annotations

from storyswap.models.story import MEDIA_CONTENT_TYPES, ContentType, SwapRequirements
from storyswap.models.swap import Submission, SubmissionContent, SwapValidation
from storyswap.utils.text_normalizer import sanitize_text

# Media submissions are credited with this many characters of content.
MEDIA_CONTENT_CREDIT = 50


def build_validation_snapshot(submission: Submission) -> SwapValidation:
    content = submission.content
    content_length = len(content.text) if content.text else 0
    if content.media:
        content_length = max(content_length, MEDIA_CONTENT_CREDIT)

    return SwapValidation(
        content_length=content_length,
        has_location=submission.location is not None and submission.location.has_coordinates(),
        has_media=bool(content.media),
    )


def validate_submission(submission: Submission, requirements: SwapRequirements) -> list[str]:
    """Return every requirement the submission violates.

    Args:
        submission: The candidate story payload.
        requirements: The target story's swap requirements.

    Returns:
        Violation messages, empty when the submission qualifies.
    """
    snapshot = build_validation_snapshot(submission)
    errors: list[str] = []

    if snapshot.content_length < requirements.min_content_length:
        errors.append(f"Content must be at least {requirements.min_content_length} characters")

    if requirements.requires_location and not snapshot.has_location:
        errors.append("Location is required for this swap")

    allowed = requirements.allowed_content_types
    if allowed and not _has_allowed_type(submission, set(allowed)):
        errors.append(
            "Content type must be one of: " + ", ".join(t.value for t in allowed)
        )

    return errors


def _has_allowed_type(submission: Submission, allowed: set[ContentType]) -> bool:
    content = submission.content
    if any(MEDIA_CONTENT_TYPES[item.type] in allowed for item in content.media):
        return True
    return ContentType.TEXT in allowed and bool(content.text)


def clean_submission(submission: Submission) -> Submission:
    """Strip markup from the user-supplied text fields and drop blank tags."""
    content = submission.content
    text = sanitize_text(content.text) if content.text else None
    return submission.model_copy(update={
        "title": sanitize_text(submission.title) if submission.title else "",
        "content": SubmissionContent(type=content.type, text=text or None, media=list(content.media)),
        "tags": [tag.strip() for tag in submission.tags if tag and tag.strip()],
    })
