"""
Mentor Application Intake Normalizer

Turns heterogeneous submissions into a canonical ApplicationDraft:

- normalize_form_answers: question-label/answer pairs from the public form
- normalize_csv_row: spreadsheet rows keyed by column header
- normalize_api_payload: structured JSON bodies from the web app

Labels are matched through the keyword table in vocabulary.py, so
rephrased questions keep working. Consent answers are fail-closed: only
phrases on the truthy allow-list count as "yes". Unknown topic and format
options are slugified and kept.

Normalization never raises for bad input. Every problem is collected and
returned in IntakeResult.errors so batch callers can move on to the next
row.
"""

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import EmailStr, TypeAdapter, ValidationError

from app.modules.mentor_applications import vocabulary
from app.modules.mentor_applications.models import MAX_LENGTHS
from app.modules.mentor_applications.schemas import ApplicationDraft, IntakeResult

logger = logging.getLogger(__name__)

_EMAIL_ADAPTER = TypeAdapter(EmailStr)
_LIST_SEPARATORS = re.compile(r"[;,]")
_SLUG = re.compile(r"[^a-z0-9]+")
_YEAR = re.compile(r"\b(19|20)\d{2}\b")

# API body keys (camelCase and snake_case) -> canonical field
API_FIELD_ALIASES: dict[str, str] = {
    "email": "email",
    "fullName": "full_name",
    "full_name": "full_name",
    "name": "full_name",
    "firstName": "first_name",
    "first_name": "first_name",
    "lastName": "last_name",
    "last_name": "last_name",
    "institution": "institution",
    "university": "institution",
    "graduationYear": "graduation_year",
    "graduation_year": "graduation_year",
    "year": "graduation_year",
    "ageConfirmed": "age_confirmed",
    "age_confirmed": "age_confirmed",
    "agreementAccepted": "agreement_accepted",
    "agreement_accepted": "agreement_accepted",
    "perspectiveConfirmed": "perspective_confirmed",
    "perspective_confirmed": "perspective_confirmed",
    "topics": "topics",
    "sessionFormats": "session_formats",
    "session_formats": "session_formats",
    "hoursPerWeek": "hours_per_week",
    "hours_per_week": "hours_per_week",
    "languages": "languages",
    "priorExperience": "prior_experience",
    "prior_experience": "prior_experience",
    "motivation": "motivation",
    "whyJoin": "motivation",
    "bio": "motivation",
    "introVideoUrl": "intro_video_url",
    "intro_video_url": "intro_video_url",
    "socialLinks": "social_links",
    "social_links": "social_links",
    "instagram": "social_links",
    "referral": "referral_source",
    "referralSource": "referral_source",
    "referral_source": "referral_source",
}


# ============================================
# Value coercion
# ============================================


def is_truthy(value: Any) -> bool:
    """
    Strict boolean coercion against the truthy allow-list.

    ``True`` and recognized phrases are truthy; a list is truthy when any
    of its items is. Everything else, including unrecognized text, is False.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return vocabulary.normalize_phrase(value) in vocabulary.TRUTHY_PHRASES
    if isinstance(value, (list, tuple)):
        return any(is_truthy(item) for item in value)
    return False


def slugify(value: str) -> str:
    return _SLUG.sub("_", value.lower()).strip("_")


def _tokens(value: Any) -> list[str]:
    """Split a list-valued answer into raw option strings."""
    if value is None or isinstance(value, bool):
        return []
    if isinstance(value, (list, tuple)):
        # Checkbox answers arrive pre-split; option text may contain commas
        return [str(item).strip() for item in value if str(item).strip()]
    return [part.strip() for part in _LIST_SEPARATORS.split(str(value)) if part.strip()]


def normalize_options(value: Any, canonical: Mapping[str, str]) -> list[str]:
    """Map options through ``canonical``; slugify unknown ones. Order kept, duplicates dropped."""
    result: list[str] = []
    for token in _tokens(value):
        slug = canonical.get(vocabulary.normalize_phrase(token)) or slugify(token)
        if slug and slug not in result:
            result.append(slug)
    return result


def normalize_languages(value: Any) -> list[str]:
    seen: set[str] = set()
    languages: list[str] = []
    for token in _tokens(value):
        key = token.lower()
        if key not in seen:
            seen.add(key)
            languages.append(token)
    return languages or list(vocabulary.DEFAULT_LANGUAGES)


def text_value(value: Any) -> str | None:
    """Trimmed text for a raw answer; lists are joined, empties and booleans are None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(item) for item in value)
    text = str(value).strip()
    return text or None


def _year(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = text_value(value)
    if not text:
        return None
    match = _YEAR.search(text)
    return int(match.group(0)) if match else None


# ============================================
# Draft assembly
# ============================================


def _build(raw: dict[str, Any]) -> IntakeResult:
    """Validate raw canonical fields and build the draft."""
    errors: list[str] = []

    email = (text_value(raw.get("email")) or "").lower()
    if not email:
        errors.append("email is required")
    else:
        try:
            _EMAIL_ADAPTER.validate_python(email)
        except ValidationError:
            errors.append(f"email '{email}' is not a valid email address")

    full_name = text_value(raw.get("full_name"))
    if not full_name:
        parts = [text_value(raw.get("first_name")), text_value(raw.get("last_name"))]
        full_name = " ".join(part for part in parts if part) or None
    if not full_name:
        errors.append("full_name is required")

    institution = text_value(raw.get("institution"))
    if not institution:
        errors.append("institution is required")

    age_confirmed = is_truthy(raw.get("age_confirmed"))
    if not age_confirmed:
        errors.append("age_confirmed requires an explicit confirmation of being 18 or older")

    agreement_accepted = is_truthy(raw.get("agreement_accepted"))
    if not agreement_accepted:
        errors.append("agreement_accepted requires explicit acceptance of the mentor agreement")

    bounded = {
        "email": email,
        "full_name": full_name,
        "institution": institution,
        "hours_per_week": text_value(raw.get("hours_per_week")),
        "intro_video_url": text_value(raw.get("intro_video_url")),
        "referral_source": text_value(raw.get("referral_source")),
    }
    for field, value in bounded.items():
        limit = MAX_LENGTHS[field]
        if value and len(value) > limit:
            errors.append(f"{field} must be at most {limit} characters (got {len(value)})")

    if errors:
        return IntakeResult(success=False, errors=errors)

    draft = ApplicationDraft(
        **bounded,
        graduation_year=_year(raw.get("graduation_year")),
        age_confirmed=age_confirmed,
        agreement_accepted=agreement_accepted,
        perspective_confirmed=is_truthy(raw.get("perspective_confirmed")),
        topics=normalize_options(raw.get("topics"), vocabulary.TOPIC_VOCABULARY),
        session_formats=normalize_options(
            raw.get("session_formats"), vocabulary.SESSION_FORMAT_VOCABULARY
        ),
        languages=normalize_languages(raw.get("languages")),
        prior_experience=text_value(raw.get("prior_experience")),
        motivation=text_value(raw.get("motivation")),
        social_links=text_value(raw.get("social_links")),
    )
    return IntakeResult(success=True, record=draft)


def _collect_labeled(pairs: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Map label/answer pairs onto canonical fields. First non-empty answer wins."""
    raw: dict[str, Any] = {}
    for label, answer in pairs:
        field = vocabulary.match_field(label)
        if field is None:
            logger.debug(f"Unrecognized intake label: {label!r}")
            continue
        if answer is None or answer == "" or answer == []:
            continue
        raw.setdefault(field, answer)
    return raw


def normalize_form_answers(
    answers: Iterable[Mapping[str, Any]],
    respondent_email: str | None = None,
) -> IntakeResult:
    """
    Normalize a form submission given as ``[{label, answer}, ...]``.

    Args:
        answers: Question/answer pairs
        respondent_email: Address the form collected automatically; used
            when no question maps to the email field

    Returns:
        IntakeResult with the draft or the full list of problems
    """
    raw = _collect_labeled((str(item.get("label", "")), item.get("answer")) for item in answers)
    if "email" not in raw and respondent_email:
        raw["email"] = respondent_email
    return _build(raw)


def normalize_csv_row(row: Mapping[str, Any]) -> IntakeResult:
    """Normalize a spreadsheet row keyed by column header."""
    return _build(_collect_labeled((str(header), value) for header, value in row.items()))


def normalize_api_payload(payload: Mapping[str, Any]) -> IntakeResult:
    """Normalize a structured JSON body (camelCase or snake_case keys)."""
    raw: dict[str, Any] = {}
    for key, value in payload.items():
        field = API_FIELD_ALIASES.get(key)
        if field is None or value is None or value == "":
            continue
        raw.setdefault(field, value)
    return _build(raw)
