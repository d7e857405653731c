"""
Mentor Application Vocabulary

Data tables driving the intake normalizer. Form wording changes over
time; supporting a new phrasing means editing these tables and bumping
VOCABULARY_VERSION, not touching normalizer code.

- FIELD_KEYWORDS: ordered (field, keywords) pairs. A question label maps to
  the first field whose keyword appears in it as a whole word or phrase.
  Order matters: "perspective" must win over "college", "great mentor"
  over "experience", "email" over everything.
- TRUTHY_PHRASES: the complete allow-list of affirmative answers. Anything
  else is treated as "no".
- REJECTION_PHRASES: review-cell values that mean "reject".
- TOPIC_VOCABULARY / SESSION_FORMAT_VOCABULARY: form option text to
  canonical slug.
"""

import re

VOCABULARY_VERSION = "4"

FIELD_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("email", ("email", "e-mail")),
    ("perspective_confirmed", ("perspective",)),
    ("topics", ("topics", "topic")),
    ("session_formats", ("session format", "session formats", "formats")),
    ("institution", ("university", "institution", "school", "college")),
    ("graduation_year", ("graduation", "grad year", "class of", "year")),
    ("age_confirmed", ("age", "18 or older", "18+")),
    ("first_name", ("first name",)),
    ("last_name", ("last name", "surname")),
    ("full_name", ("full name", "your name", "name")),
    ("intro_video_url", ("video",)),
    ("motivation", ("bio", "about yourself", "why", "great mentor", "motivation")),
    ("prior_experience", ("experience",)),
    ("hours_per_week", ("hours",)),
    ("languages", ("languages", "language")),
    ("social_links", ("social", "portfolio", "instagram", "links")),
    ("agreement_accepted", ("agreement", "agree", "terms")),
    ("referral_source", ("hear about", "referral", "referred")),
)

TRUTHY_PHRASES: frozenset[str] = frozenset(
    {
        "yes",
        "y",
        "true",
        "checked",
        "approved",
        "approve",
        "i agree",
        "agree",
        "i agree to the terms",
        "i accept",
        "accepted",
        "i confirm",
        "confirmed",
        "18 or older",
        "18+",
        "i am 18 or older",
        "i'm 18 or older",
        "i confirm i am 18 or older",
        "i confirm i'm 18 or older",
        "yes, i am 18 or older",
    }
)

REJECTION_PHRASES: frozenset[str] = frozenset(
    {
        "no",
        "n",
        "false",
        "reject",
        "rejected",
        "denied",
        "declined",
    }
)

TOPIC_VOCABULARY: dict[str, str] = {
    "texting analysis & response crafting": "texting_analysis",
    "first dates & planning": "first_dates",
    "red flags / green flags": "red_green_flags",
    "breakup support": "breakup_support",
    "situationship clarity": "situationship_clarity",
    "confidence & appearance tips": "confidence_appearance",
    "social dynamics & parties": "social_dynamics",
    "roommate/friend drama": "roommate_friend_drama",
    "faith/values & boundaries (non-therapeutic)": "faith_values_boundaries",
    "long-distance strategies": "long_distance_strategies",
}

SESSION_FORMAT_VOCABULARY: dict[str, str] = {
    "async chat (within 24-48h)": "async_chat",
    "async chat": "async_chat",
    "live audio": "live_audio",
    "live video": "live_video",
}

DEFAULT_LANGUAGES = ("English",)

_WHITESPACE = re.compile(r"\s+")
_DASHES = str.maketrans({"–": "-", "—": "-", "’": "'"})
_TRAILING_PUNCTUATION = ".!"


def normalize_phrase(value: str) -> str:
    """Lowercase, unify dashes and quotes, collapse whitespace, drop trailing punctuation."""
    text = _WHITESPACE.sub(" ", value.translate(_DASHES).strip().lower())
    return text.rstrip(_TRAILING_PUNCTUATION).strip()


def _compile(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![a-z0-9]){re.escape(keyword)}(?![a-z0-9])")


FIELD_PATTERNS: tuple[tuple[str, tuple[re.Pattern[str], ...]], ...] = tuple(
    (field, tuple(_compile(keyword) for keyword in keywords)) for field, keywords in FIELD_KEYWORDS
)


def match_field(label: str) -> str | None:
    """Return the canonical field for a free-text question label, if any."""
    text = normalize_phrase(label)
    for field, patterns in FIELD_PATTERNS:
        if any(pattern.search(text) for pattern in patterns):
            return field
    return None
