"""Input normalization and validation for documents and versions."""

import re
import unicodedata
from collections.abc import Collection, Iterable
from typing import Any
from urllib.parse import urlparse

from policyhub.app.lifecycle.errors import ValidationError
from policyhub.app.models.common import DocumentCategory, Role

# language[-Script][-REGION], e.g. en, en-GB, zh-Hant-TW, es-419
_LOCALE_RE = re.compile(r"^([a-zA-Z]{2,3})(?:[-_]([a-zA-Z]{4}))?(?:[-_]([a-zA-Z]{2}|\d{3}))?$")
_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

SLUG_MAX_LENGTH = 120
METADATA_KEYS = ("contactEmail", "heroImageUrl", "reviewCadenceDays")
# Fixed route segments under /admin/legal/policies
RESERVED_SLUGS = frozenset({"summary"})


def normalize_locale(raw: str | None, allowed: Collection[str] = ()) -> str:
    """Validate a locale tag and return its canonical casing.

    Raises:
        ValidationError: If the tag is malformed or not in ``allowed``.
    """
    value = (raw or "").strip()
    match = _LOCALE_RE.match(value)
    if not match:
        raise ValidationError(f"'{value}' is not a recognized locale tag", locale=value)

    language, script, region = match.groups()
    parts = [language.lower()]
    if script:
        parts.append(script.title())
    if region:
        parts.append(region.upper())
    locale = "-".join(parts)

    if allowed and locale not in {normalize_locale(item) for item in allowed}:
        raise ValidationError(f"Locale '{locale}' is not enabled", locale=locale)
    return locale


def slugify(text: str) -> str:
    """Derive a URL-safe slug from free text."""
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text.lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH].rstrip("-")


def validate_slug(slug: str) -> str:
    """Raise ValidationError unless the slug is URL-safe."""
    if not slug or len(slug) > SLUG_MAX_LENGTH or not _SLUG_RE.match(slug):
        raise ValidationError(
            "Slug must contain lowercase letters, digits and single hyphens", slug=slug
        )
    if slug in RESERVED_SLUGS:
        raise ValidationError(f"Slug '{slug}' is reserved", slug=slug)
    return slug


def validate_title(title: str | None) -> str:
    value = (title or "").strip()
    if not value:
        raise ValidationError("Title is required")
    return value


def parse_category(raw: str) -> DocumentCategory:
    try:
        return DocumentCategory(raw)
    except ValueError:
        allowed = ", ".join(category.value for category in DocumentCategory)
        raise ValidationError(
            f"Unknown category '{raw}' (expected one of: {allowed})", category=raw
        ) from None


def normalize_string_array(values: Iterable[Any] | None) -> list[str]:
    """Trim, drop empties and de-duplicate case-insensitively, keeping first spelling."""
    seen: set[str] = set()
    result: list[str] = []
    for item in values or []:
        text = str(item).strip()
        if not text or text.lower() in seen:
            continue
        seen.add(text.lower())
        result.append(text)
    return result


def normalize_roles(values: Iterable[Any] | None, field: str) -> list[Role]:
    roles: list[Role] = []
    for text in normalize_string_array(values):
        try:
            role = Role(text.lower())
        except ValueError:
            raise ValidationError(f"Unknown role '{text}' in {field}", field=field, role=text) from None
        if role not in roles:
            roles.append(role)
    return roles


def normalize_metadata(raw: dict[str, Any] | None) -> dict[str, str]:
    """Keep known metadata keys with non-empty values, stringified."""
    metadata: dict[str, str] = {}
    for key in METADATA_KEYS:
        value = (raw or {}).get(key)
        if value is None or str(value).strip() == "":
            continue
        metadata[key] = str(value).strip()

    email = metadata.get("contactEmail")
    if email is not None and not _EMAIL_RE.match(email):
        raise ValidationError("contactEmail must be an email address", field="contactEmail")

    cadence = metadata.get("reviewCadenceDays")
    if cadence is not None:
        if not (cadence.isascii() and cadence.isdigit()) or int(cadence) <= 0:
            raise ValidationError(
                "reviewCadenceDays must be a positive whole number", field="reviewCadenceDays"
            )
        metadata["reviewCadenceDays"] = str(int(cadence))

    hero = metadata.get("heroImageUrl")
    if hero is not None:
        validate_url(hero, field="heroImageUrl")
    return metadata


def validate_content(content: str | None) -> str:
    if content is None or not content.strip():
        raise ValidationError("Version content must not be empty", field="content")
    return content


def validate_url(url: str, field: str = "external_url") -> str:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"{field} must be an absolute http(s) URL", field=field)
    return url


def optional_text(value: str | None) -> str | None:
    """Collapse blank strings to None."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None
