"""Automated moderation checks run against a swap submission.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: Services.
# Depends on: IStoryProvider (read-only corpus lookup for duplicates).
#
# The pipeline runs every configured check, even after one has failed,
# so the swap records the full set of failure reasons for the moderator
# who reviews it.  A check never raises for a failing submission; an
# exception escaping a check is a processing fault and is left for the
# swap service to handle.
#
#   ProfanityCheck          blocklist substrings (+ optional word list)
#   DuplicateContentCheck   body prefix already in a published story
#   ModerationPatternCheck  disallowed-topic regexes
#
# ``ModerationPipeline.from_config`` builds the default pipeline from the
# ``moderation`` section of config/config.yaml.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any

import structlog
from better_profanity import profanity
from pydantic import BaseModel, ConfigDict, Field

from storyswap.interfaces.story_provider import IStoryProvider
from storyswap.models.swap import Submission

logger = structlog.get_logger(logger_name=__name__)

PROFANITY_CHECK = "profanity"
DUPLICATE_CHECK = "duplicate"
PATTERN_CHECK = "moderation"

_DEFAULT_BLOCKLIST = ("spam", "fake", "scam")
_DEFAULT_PATTERNS = ("violence", "hate", "inappropriate")
_DEFAULT_DUPLICATE_MIN_LENGTH = 50
_DEFAULT_DUPLICATE_PREFIX_LENGTH = 100


class CheckResult(BaseModel):
    """Outcome of a single moderation check."""

    model_config = ConfigDict(frozen=True)

    name: str
    passed: bool
    reason: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class ModerationReport(BaseModel):
    """Combined outcome of every check in the pipeline."""

    model_config = ConfigDict(frozen=True)

    results: list[CheckResult] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def reasons(self) -> list[str]:
        return [r.reason for r in self.results if not r.passed and r.reason]

    @property
    def confidence(self) -> float:
        return max((r.confidence for r in self.results if not r.passed), default=0.0)

    def passed_check(self, name: str) -> bool:
        """True when the named check passed; checks that did not run count as passed."""
        return all(r.passed for r in self.results if r.name == name)


def _title_and_body(submission: Submission) -> list[str]:
    return [part for part in (submission.title, submission.content.text) if part]


class IModerationCheck(ABC):
    """One automated moderation rule."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier recorded with the result."""

    @abstractmethod
    async def run(self, submission: Submission) -> CheckResult:
        """Evaluate ``submission``.  Failing content is a result, not an exception."""


class ProfanityCheck(IModerationCheck):
    """Rejects title or body containing a blocklisted substring.

    When ``use_wordlist`` is set, the better-profanity word list is applied
    as a second layer on whole words.
    """

    reason = "profanity_detected"

    def __init__(
        self,
        blocklist: list[str] | tuple[str, ...] = _DEFAULT_BLOCKLIST,
        use_wordlist: bool = False,
    ) -> None:
        self._blocklist = [word.lower() for word in blocklist if word]
        self._use_wordlist = use_wordlist
        if use_wordlist:
            profanity.load_censor_words()

    @property
    def name(self) -> str:
        return PROFANITY_CHECK

    async def run(self, submission: Submission) -> CheckResult:
        text = " ".join(_title_and_body(submission)).lower()
        hit = any(word in text for word in self._blocklist)
        if not hit and self._use_wordlist:
            hit = profanity.contains_profanity(text)

        if hit:
            return CheckResult(name=self.name, passed=False, reason=self.reason)
        return CheckResult(name=self.name, passed=True)


class DuplicateContentCheck(IModerationCheck):
    """Rejects a body whose opening characters already appear in a published story."""

    reason = "duplicate_content"

    def __init__(
        self,
        story_store: IStoryProvider,
        min_length: int = _DEFAULT_DUPLICATE_MIN_LENGTH,
        prefix_length: int = _DEFAULT_DUPLICATE_PREFIX_LENGTH,
    ) -> None:
        self._story_store = story_store
        self._min_length = min_length
        self._prefix_length = prefix_length

    @property
    def name(self) -> str:
        return DUPLICATE_CHECK

    async def run(self, submission: Submission) -> CheckResult:
        text = submission.content.text
        if not text or len(text) < self._min_length:
            return CheckResult(name=self.name, passed=True)

        matches = await self._story_store.find_published_containing(text[: self._prefix_length])
        if matches:
            logger.info("duplicate_content_detected", matching_story_ids=matches)
            return CheckResult(name=self.name, passed=False, reason=self.reason)
        return CheckResult(name=self.name, passed=True)


class ModerationPatternCheck(IModerationCheck):
    """Rejects title or body matching a disallowed-topic pattern."""

    def __init__(
        self,
        patterns: list[str] | tuple[str, ...] = _DEFAULT_PATTERNS,
        reason: str = "inappropriate_content",
        confidence: float = 0.8,
    ) -> None:
        self._patterns = [re.compile(p, re.IGNORECASE) for p in patterns]
        self._reason = reason
        self._confidence = confidence

    @property
    def name(self) -> str:
        return PATTERN_CHECK

    async def run(self, submission: Submission) -> CheckResult:
        parts = _title_and_body(submission)
        flagged = any(pattern.search(part) for pattern in self._patterns for part in parts)
        if flagged:
            return CheckResult(
                name=self.name,
                passed=False,
                reason=self._reason,
                confidence=self._confidence,
            )
        return CheckResult(name=self.name, passed=True)


class ModerationPipeline:
    """Runs a fixed sequence of moderation checks and aggregates the results."""

    def __init__(self, checks: list[IModerationCheck]) -> None:
        self._checks = list(checks)

    @classmethod
    def from_config(cls, config: dict[str, Any], story_store: IStoryProvider) -> ModerationPipeline:
        """Build the default three-check pipeline from the ``moderation`` config section."""
        section = config.get("moderation", {}) or {}
        return cls([
            ProfanityCheck(
                blocklist=section.get("blocklist", list(_DEFAULT_BLOCKLIST)),
                use_wordlist=bool(section.get("use_profanity_wordlist", False)),
            ),
            DuplicateContentCheck(
                story_store,
                min_length=int(section.get("duplicate_min_length", _DEFAULT_DUPLICATE_MIN_LENGTH)),
                prefix_length=int(section.get("duplicate_prefix_length", _DEFAULT_DUPLICATE_PREFIX_LENGTH)),
            ),
            ModerationPatternCheck(
                patterns=section.get("patterns", list(_DEFAULT_PATTERNS)),
                reason=section.get("pattern_reason", "inappropriate_content"),
                confidence=float(section.get("pattern_confidence", 0.8)),
            ),
        ])

    @property
    def check_names(self) -> list[str]:
        return [check.name for check in self._checks]

    async def run(self, submission: Submission) -> ModerationReport:
        results: list[CheckResult] = []
        for check in self._checks:
            results.append(await check.run(submission))

        report = ModerationReport(results=results)
        logger.debug(
            "moderation_complete",
            passed=report.passed,
            reasons=report.reasons,
        )
        return report
