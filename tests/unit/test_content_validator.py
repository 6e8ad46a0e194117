"""Unit tests for swap submission rules in storyswap.services.content_validator."""

from __future__ import annotations

from storyswap.models.story import ContentType, MediaItem, MediaType, SwapRequirements
from storyswap.models.swap import SubmissionLocation
from storyswap.services.content_validator import (
    MEDIA_CONTENT_CREDIT,
    build_validation_snapshot,
    clean_submission,
    validate_submission,
)
from tests.conftest import SUBMISSION_TEXT, make_submission

_PHOTO = MediaItem(type=MediaType.IMAGE, url="https://media.example.com/a.jpg")


class TestValidationSnapshot:
    def test_text_submission(self):
        snapshot = build_validation_snapshot(make_submission())
        assert snapshot.content_length == len(SUBMISSION_TEXT)
        assert snapshot.has_location is True
        assert snapshot.has_media is False

    def test_media_only_submission_gets_content_credit(self):
        submission = make_submission(text=None, media=[_PHOTO], content_type=ContentType.PHOTO)
        snapshot = build_validation_snapshot(submission)
        assert snapshot.content_length == MEDIA_CONTENT_CREDIT
        assert snapshot.has_media is True

    def test_out_of_range_coordinates_are_not_a_location(self):
        submission = make_submission(coordinates=[200.0, 10.0])
        assert build_validation_snapshot(submission).has_location is False

    def test_single_coordinate_is_not_a_location(self):
        assert SubmissionLocation(coordinates=[13.4]).has_coordinates() is False


class TestValidateSubmission:
    def test_qualifying_submission_has_no_violations(self):
        assert validate_submission(make_submission(), SwapRequirements()) == []

    def test_short_content(self):
        violations = validate_submission(make_submission(text="Too short"), SwapRequirements())
        assert violations == ["Content must be at least 50 characters"]

    def test_missing_location(self):
        violations = validate_submission(make_submission(coordinates=[]), SwapRequirements())
        assert violations == ["Location is required for this swap"]

    def test_location_not_required(self):
        requirements = SwapRequirements(requires_location=False)
        assert validate_submission(make_submission(coordinates=[]), requirements) == []

    def test_all_violations_in_order(self):
        requirements = SwapRequirements(allowed_content_types=[ContentType.PHOTO])
        violations = validate_submission(
            make_submission(text="Too short", coordinates=[]),
            requirements,
        )
        assert violations == [
            "Content must be at least 50 characters",
            "Location is required for this swap",
            "Content type must be one of: photo",
        ]

    def test_image_satisfies_photo_requirement(self):
        requirements = SwapRequirements(allowed_content_types=[ContentType.PHOTO])
        submission = make_submission(media=[_PHOTO])
        assert validate_submission(submission, requirements) == []

    def test_text_satisfies_text_requirement(self):
        requirements = SwapRequirements(allowed_content_types=[ContentType.TEXT, ContentType.AUDIO])
        assert validate_submission(make_submission(), requirements) == []


class TestCleanSubmission:
    def test_strips_markup_from_title_and_body(self):
        submission = make_submission(title="<b>Night</b> market", text="<i>Lanterns</i> everywhere")
        cleaned = clean_submission(submission)
        assert cleaned.title == "Night market"
        assert cleaned.content.text == "Lanterns everywhere"

    def test_drops_blank_tags(self):
        cleaned = clean_submission(make_submission(tags=["  food ", "", "   "]))
        assert cleaned.tags == ["food"]

    def test_markup_only_body_becomes_none(self):
        cleaned = clean_submission(make_submission(text="<br>"))
        assert cleaned.content.text is None
