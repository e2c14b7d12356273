"""Channel Family Rater - Content Classifier
Copyright (c) 2026 beautifulplanet
Licensed under MIT License

Maps a video's content bundle to per-category severity scores.

Flow:
  Attempt: LLM classifies the bundle against a fixed rubric (JSON output)
  Retry:   one retry with a stricter JSON-only instruction
  Fallback: deterministic keyword rule table over title + description
Educational content gets a single -1 discount on every category.
"""

import json
import re
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from models import (
    CATEGORIES, ClassificationResult, ContentBundle, TokenUsage, normalize_scores,
)

logger = logging.getLogger(__name__)

MAX_RISK_NOTES = 3
MAX_RISK_NOTE_LENGTH = 32
EDUCATIONAL_DISCOUNT = 1.0
FALLBACK_FLOOR_SCORE = 1.0

CLASSIFIER_SYSTEM_PROMPT = """You are an ESRB-style content rater judging how suitable a YouTube video is for children and families. You will be given the title, description and, when available, a transcript excerpt and top viewer comments of a single video.

Score each category on a decimal scale from 0 to 4:
  0 = none, 1 = mild/brief, 2 = moderate, 3 = frequent or explicit, 4 = extreme

Categories:
- violence: fighting, weapons, injury, gore, threats
- language: profanity, slurs, crude or hateful language
- sexual_content: innuendo, nudity, sexual themes
- substances: alcohol, drugs, tobacco, vaping (use, glamorization or instructions)
- gambling: casinos, slots, betting, sports betting, gambling sponsorships, loot boxes
- sensitive_topics: self-harm, abuse, hate, disturbing news, mature political or religious conflict
- commercial_pressure: sponsorship reads, promo codes, aggressive merch/ads aimed at viewers

RULES:
1. Prefer conservative (higher) ratings when the evidence is ambiguous
2. Judge what the video contains, not what the comments argue about
3. Set "isEducational" to true only if the primary intent is teaching or informing (tutorial, lesson, documentary, explainer)
4. Do NOT lower scores yourself for educational content; report raw severity

Respond with ONLY valid JSON (no markdown, no code fences):
{
    "violence": 0-4,
    "language": 0-4,
    "sexual_content": 0-4,
    "substances": 0-4,
    "gambling": 0-4,
    "sensitive_topics": 0-4,
    "commercial_pressure": 0-4,
    "riskNotes": ["1 to 3 short notes, max 32 characters each"],
    "isEducational": true | false
}"""

STRICT_RETRY_INSTRUCTION = (
    "Your previous reply could not be used. Reply with ONLY one JSON object "
    "with exactly these keys: " + ", ".join(CATEGORIES) + ", riskNotes, isEducational. "
    "Each category must be a number between 0 and 4. No prose, no markdown, no code fences."
)


class VideoScoreSchema(BaseModel):
    """Structured output expected from the classification service."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    violence: float = Field(ge=0, le=4)
    language: float = Field(ge=0, le=4)
    sexual_content: float = Field(ge=0, le=4)
    substances: float = Field(ge=0, le=4)
    gambling: float = Field(ge=0, le=4)
    sensitive_topics: float = Field(ge=0, le=4)
    commercial_pressure: float = Field(ge=0, le=4)
    risk_notes: list[str] = Field(default_factory=list, alias="riskNotes")
    is_educational: bool = Field(False, alias="isEducational")

    @field_validator("risk_notes", mode="before")
    @classmethod
    def _clean_notes(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        notes = [str(n).strip()[:MAX_RISK_NOTE_LENGTH] for n in value if str(n).strip()]
        return notes[:MAX_RISK_NOTES]

    def scores(self) -> dict[str, float]:
        return normalize_scores({k: getattr(self, k) for k in CATEGORIES})


# ------------------------------------------------------------------ #
#  Deterministic fallback: keyword rule table                        #
# ------------------------------------------------------------------ #

@dataclass(frozen=True)
class KeywordRule:
    category: str
    keywords: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()
    score: float = 3.0
    tag: Optional[str] = None

    def compile(self) -> re.Pattern:
        parts = []
        if self.keywords:
            escaped = "|".join(re.escape(k) for k in self.keywords)
            parts.append(r"(?<!\w)(?:" + escaped + r")(?!\w)")
        parts.extend(self.patterns)
        return re.compile("|".join(parts), re.IGNORECASE)


FALLBACK_RULES = [
    KeywordRule("violence", keywords=(
        "fight", "fights", "fighting", "blood", "bloody", "weapon", "weapons", "gun", "guns",
        "shooting", "shootout", "kill", "kills", "killed", "killing", "murder", "gore",
        "stabbing", "brutal", "massacre",
    )),
    KeywordRule("violence", keywords=("battle", "punch", "war", "zombie", "horror"), score=2.0),
    KeywordRule("language", keywords=(
        "fuck", "fucking", "fucked", "shit", "bitch", "asshole", "bastard", "motherfucker", "wtf", "stfu",
    )),
    KeywordRule("language", keywords=("damn", "crap", "hell", "pissed", "sucks"), score=2.0),
    KeywordRule("sexual_content", keywords=(
        "sex", "sexy", "nude", "nudity", "naked", "porn", "onlyfans", "xxx", "strip club",
        "hookup", "erotic", "nsfw",
    )),
    KeywordRule("sexual_content", keywords=("kissing", "bikini", "lingerie", "flirting", "dating"), score=2.0),
    KeywordRule("substances", keywords=(
        "beer", "wine", "vodka", "whiskey", "tequila", "alcohol", "drunk", "drinking game",
        "hangover", "cocktail", "cocktails", "booze",
    ), tag="alcohol"),
    KeywordRule("substances", keywords=(
        "weed", "cannabis", "marijuana", "cocaine", "drugs", "vape", "vaping", "smoking",
        "cigarette", "cigarettes", "edibles", "stoned",
    )),
    KeywordRule("gambling", keywords=(
        "slots", "slot machine", "jackpot", "casino", "roulette", "blackjack", "poker",
        "gambling", "betting", "sportsbook", "stake.com",
    ), patterns=(r"\bbet\s*\$",)),
    KeywordRule("gambling", keywords=("loot box", "lootbox", "case opening", "gacha", "lottery"), score=2.0),
    KeywordRule("sensitive_topics", keywords=(
        "suicide", "self-harm", "self harm", "abuse", "racism", "terrorism", "terrorist",
        "eating disorder", "overdose", "hate crime",
    )),
    KeywordRule("sensitive_topics", keywords=("politics", "election", "religion", "death", "grief", "anxiety"), score=2.0),
    KeywordRule("commercial_pressure", keywords=(
        "sponsored", "sponsor", "promo code", "discount code", "use code", "affiliate",
        "link in bio", "buy now", "limited time", "merch drop",
    )),
    KeywordRule("commercial_pressure", keywords=("merch", "giveaway", "ad", "partnered"), score=2.0),
]

EDUCATIONAL_KEYWORDS = (
    "tutorial", "lesson", "lessons", "lecture", "explained", "explainer", "how to", "how-to",
    "course", "professor", "documentary", "science", "learn", "learning", "for beginners",
    "step by step", "history of", "homework", "educational",
)

EDUCATIONAL_PATTERNS = [
    re.compile(r"\bhow (?:to|does|do)\b", re.IGNORECASE),
    re.compile(r"\blearn(?:ing)? (?:about|how)\b", re.IGNORECASE),
    re.compile(r"\b(?:chapter|unit|module|part) \d+\b", re.IGNORECASE),
    re.compile(r"\b(?:intro|introduction) to\b", re.IGNORECASE),
]

# Compiled once
_COMPILED_RULES = [(rule, rule.compile()) for rule in FALLBACK_RULES]
_EDUCATIONAL_RE = KeywordRule("educational", keywords=EDUCATIONAL_KEYWORDS).compile()


# Category x severity-level labels used for risk notes (mild, moderate, strong)
RISK_NOTE_LABELS = {
    "violence": ("mild action", "moderate violence", "strong violence"),
    "language": ("mild language", "crude language", "strong language"),
    "sexual_content": ("mild innuendo", "suggestive themes", "sexual content"),
    "substances": ("substance mentions", "drug/alcohol use", "heavy substance use"),
    "gambling": ("gambling mentions", "gambling content", "heavy gambling"),
    "sensitive_topics": ("mature themes", "sensitive topics", "disturbing topics"),
    "commercial_pressure": ("light sponsorship", "sponsored content", "heavy ad pressure"),
}
FAMILY_FRIENDLY_NOTE = "family friendly"
ALCOHOL_NOTE = "alcohol references"


def severity_level(score: float) -> int:
    if score <= 1:
        return 0
    if score <= 2:
        return 1
    return 2


def derive_risk_notes(scores: dict[str, float], tags: tuple[str, ...] = ()) -> tuple[str, ...]:
    """1-3 notes from the top 1-2 scoring categories; all-zero vectors are family friendly."""
    ranked = sorted((c for c in CATEGORIES if scores.get(c, 0) > 0), key=lambda c: -scores[c])
    if not ranked:
        return (FAMILY_FRIENDLY_NOTE,)
    notes = [RISK_NOTE_LABELS[c][severity_level(scores[c])] for c in ranked[:2]]
    if "alcohol" in tags and "substances" in ranked[:2]:
        notes.append(ALCOHOL_NOTE)
    return tuple(notes[:MAX_RISK_NOTES])


def detect_educational(text: str) -> bool:
    if _EDUCATIONAL_RE.search(text):
        return True
    return any(p.search(text) for p in EDUCATIONAL_PATTERNS)


def apply_educational_discount(result: ClassificationResult) -> ClassificationResult:
    """Subtract 1 from every category of educational content, exactly once."""
    if not result.is_educational or result.discounted:
        return result
    discounted = {k: max(0.0, v - EDUCATIONAL_DISCOUNT) for k, v in result.scores.items()}
    return replace(result, scores=normalize_scores(discounted), discounted=True)


def fallback_classify(title: str, description: str) -> ClassificationResult:
    """
    Deterministic keyword classification of title + description.
    Unmatched categories keep a floor of 1 (insufficient evidence, assume non-zero).
    """
    text = f"{title or ''} {description or ''}".lower()
    scores = {c: FALLBACK_FLOOR_SCORE for c in CATEGORIES}
    tags: list[str] = []

    for rule, pattern in _COMPILED_RULES:
        if pattern.search(text):
            scores[rule.category] = max(scores[rule.category], rule.score)
            if rule.tag and rule.tag not in tags:
                tags.append(rule.tag)

    result = ClassificationResult(
        scores=normalize_scores(scores),
        is_educational=detect_educational(text),
        source="fallback",
        tags=tuple(tags),
    )
    result = apply_educational_discount(result)
    return replace(result, risk_notes=derive_risk_notes(result.scores, result.tags))


# ------------------------------------------------------------------ #
#  Retry / fallback state machine                                    #
# ------------------------------------------------------------------ #

class AttemptState(Enum):
    SUCCESS = "success"
    RETRY_NEEDED = "retry_needed"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class AttemptOutcome:
    state: AttemptState
    result: Optional[ClassificationResult] = None
    raw_text: str = ""
    error: str = ""
    usage: TokenUsage = field(default_factory=TokenUsage)


def parse_classification(text: str) -> VideoScoreSchema:
    """Decode and validate model output. Raises ValueError / ValidationError."""
    text = (text or "").strip()
    # Handle potential markdown fences
    if text.startswith("```"):
        text = text.split("```")[1]
        if text.startswith("json"):
            text = text[4:]
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("classification output is not a JSON object")
    return VideoScoreSchema.model_validate(data)


class ContentClassifier:
    """
    Classifies content bundles with an LLM, falling back to keyword rules.

    Supports:
    - OpenAI (gpt-4o-mini by default)
    - Anthropic (Claude Haiku by default)
    - Keyword fallback (no API key, or persistent model failure)
    """

    def __init__(
        self,
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        provider: str = "auto",
        model: Optional[str] = None,
        openai_client=None,
        anthropic_client=None,
    ):
        """
        Args:
            openai_api_key: OpenAI API key
            anthropic_api_key: Anthropic API key
            provider: "openai", "anthropic", or "auto" (picks best available)
            model: Override model name
            openai_client / anthropic_client: pre-built async clients (tests)
        """
        self._openai_client = openai_client
        self._anthropic_client = anthropic_client
        if self._openai_client is None and openai_api_key:
            self._openai_client = AsyncOpenAI(api_key=openai_api_key)
        if self._anthropic_client is None and anthropic_api_key:
            self._anthropic_client = AsyncAnthropic(api_key=anthropic_api_key)

        if provider == "auto":
            if self._anthropic_client is not None:
                self.provider = "anthropic"
            elif self._openai_client is not None:
                self.provider = "openai"
            else:
                self.provider = "keyword"
        else:
            self.provider = provider

        if model:
            self.model = model
        elif self.provider == "anthropic":
            self.model = "claude-3-5-haiku-latest"
        elif self.provider == "openai":
            self.model = "gpt-4o-mini"
        else:
            self.model = "keyword"

        logger.info(f"🧠 Content classifier initialized: provider={self.provider}, model={self.model}")
        if self.provider != "keyword" and not self.is_ai_enabled:
            logger.warning(f"No client for provider '{self.provider}'; every video will use keyword fallback")

    @property
    def is_ai_enabled(self) -> bool:
        if self.provider == "openai":
            return self._openai_client is not None
        if self.provider == "anthropic":
            return self._anthropic_client is not None
        return False

    async def _complete(self, messages: list[dict], temperature: float) -> tuple[str, TokenUsage]:
        """Send a chat exchange to the configured provider; returns (text, usage)."""
        if self.provider == "openai":
            response = await self._openai_client.chat.completions.create(
                model=self.model,
                messages=[{"role": "system", "content": CLASSIFIER_SYSTEM_PROMPT}, *messages],
                temperature=temperature,
                max_tokens=300,
                response_format={"type": "json_object"},
            )
            usage = getattr(response, "usage", None)
            return response.choices[0].message.content or "", TokenUsage(
                prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
                requests=1,
            )

        response = await self._anthropic_client.messages.create(
            model=self.model,
            max_tokens=300,
            system=CLASSIFIER_SYSTEM_PROMPT,
            messages=messages,
            temperature=temperature,
        )
        usage = getattr(response, "usage", None)
        return response.content[0].text, TokenUsage(
            prompt_tokens=getattr(usage, "input_tokens", 0) or 0,
            completion_tokens=getattr(usage, "output_tokens", 0) or 0,
            requests=1,
        )

    async def _attempt(self, bundle: ContentBundle, previous: Optional[AttemptOutcome] = None) -> AttemptOutcome:
        """One classification attempt. A failed retry moves the state machine to FALLBACK."""
        messages = [{"role": "user", "content": bundle.text}]
        temperature = 0.2
        if previous is not None:
            if previous.raw_text:
                messages.append({"role": "assistant", "content": previous.raw_text})
            messages.append({"role": "user", "content": STRICT_RETRY_INSTRUCTION})
            temperature = 0.1
        failed_state = AttemptState.RETRY_NEEDED if previous is None else AttemptState.FALLBACK
        prior_usage = previous.usage if previous else TokenUsage()

        try:
            text, usage = await self._complete(messages, temperature)
        except Exception as e:
            return AttemptOutcome(failed_state, error=f"service error: {e}", usage=prior_usage)

        usage = prior_usage + usage
        try:
            parsed = parse_classification(text)
        except (ValueError, ValidationError) as e:
            return AttemptOutcome(failed_state, raw_text=text, error=f"invalid output: {e}", usage=usage)

        result = ClassificationResult(
            scores=parsed.scores(),
            risk_notes=tuple(parsed.risk_notes),
            is_educational=parsed.is_educational,
            source="llm",
            usage=usage,
        )
        return AttemptOutcome(AttemptState.SUCCESS, result=result, usage=usage)

    async def classify(self, bundle: ContentBundle) -> ClassificationResult:
        """
        Classify one bundle. Never raises: persistent model failure yields
        the keyword fallback (result.source == "fallback").
        """
        if not self.is_ai_enabled:
            return fallback_classify(bundle.title, bundle.description)

        outcome = await self._attempt(bundle)
        if outcome.state is AttemptState.RETRY_NEEDED:
            logger.warning(f"Classifier retry for {bundle.video_id}: {outcome.error}")
            outcome = await self._attempt(bundle, previous=outcome)

        if outcome.state is AttemptState.SUCCESS:
            result = apply_educational_discount(outcome.result)
            if not result.risk_notes:
                result = replace(result, risk_notes=derive_risk_notes(result.scores))
            logger.info(f"🧠 Classified {bundle.video_id}: max={max(result.scores.values())}, "
                        f"educational={result.is_educational}")
            return result

        logger.error(f"Classifier fell back to keyword rules for {bundle.video_id}: {outcome.error}")
        return replace(fallback_classify(bundle.title, bundle.description), usage=outcome.usage)
