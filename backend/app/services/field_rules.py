"""Field-match rules and value resolution for the bookmarklet fill script.

A rule pairs a pattern with a resolver. The pattern is tested
case-insensitively against a form control's "name id placeholder"
composite; the resolver derives the value from a ProjectSnapshot.

Rules are evaluated in FIELD_RULES order and the first matching rule with a
non-empty value wins, so the order is part of the behavior. Generic
patterns listed early (title, name, url, company, description, keywords)
carry negative look-aheads that leave the more specific fields further down
the list (meta title, logo url, business hours, ...) to their own rules.

Patterns are written in the common subset of Python re and JavaScript
RegExp: the same strings run server side in field_matcher and inside the
delivered script.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache

from app.schemas.bookmarklet import ProjectSnapshot

Resolver = Callable[[ProjectSnapshot], str]

# Declared names longer than this are not worth pattern matching
_MAX_FIELD_NAME_LENGTH = 200

# Resolver key reported for values taken from a project custom field
CUSTOM_FIELD_KEY = "custom"

_SEPARATORS = re.compile(r"[\s\-.]+")


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a rule pattern the way the browser script does (flag "i")."""
    return re.compile(pattern, re.IGNORECASE)


def _first(*values: str) -> str:
    for value in values:
        if value and value.strip():
            return value.strip()
    return ""


def _join(values: list[str], separator: str = ", ") -> str:
    return separator.join(v.strip() for v in values if v and v.strip())


# =============================================================================
# Resolvers
# =============================================================================


def resolve_title(s: ProjectSnapshot) -> str:
    return _first(s.seo_metadata.meta_title, s.title, s.project_name)


def resolve_name(s: ProjectSnapshot) -> str:
    return _first(s.project_name, s.title)


def resolve_description(s: ProjectSnapshot) -> str:
    return _first(s.seo_metadata.meta_description, s.business_description)


def resolve_company(s: ProjectSnapshot) -> str:
    return _first(s.company_name, s.project_name)


def resolve_keywords(s: ProjectSnapshot) -> str:
    """Meta keywords, then target keywords, then project keywords.

    Duplicates across the three lists are kept.
    """
    return _join(
        [*s.seo_metadata.keywords, *s.seo_metadata.target_keywords, *s.keywords]
    )


def resolve_meta_title(s: ProjectSnapshot) -> str:
    return _first(s.seo_metadata.meta_title, s.title)


def resolve_address(s: ProjectSnapshot) -> str:
    a = s.address
    return _join([a.address_line1, a.city, a.state, a.country])


@dataclass(frozen=True)
class FieldRule:
    """An ordered (key, pattern, resolver) entry.

    Attributes:
        key: Logical field name, also used as the declared-field key.
        pattern: Case-insensitive regex tested against the control composite.
        resolve: Derives the fill value from a snapshot.
    """

    key: str
    pattern: str
    resolve: Resolver

    def matches(self, text: str) -> bool:
        return compile_pattern(self.pattern).search(text) is not None


_SOCIAL = r"facebook|twitter|instagram|linked.?in|you.?tube"

FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule(
        "title",
        r"^(?!.*(?:meta|seo|page|article|post|content|listing|job)).*title",
        resolve_title,
    ),
    FieldRule(
        "name",
        r"^(?!.*(?:user|author|product|item|first|last|company|business|file))"
        r".*name",
        resolve_name,
    ),
    FieldRule(
        "url",
        rf"^(?!.*(?:logo|image|img|photo|sitemap|robots|{_SOCIAL}))"
        r".*(?:url|website|web.?site|homepage|domain|link)",
        lambda s: s.website_url,
    ),
    FieldRule("email", r"e-?mail", lambda s: s.email),
    FieldRule(
        "company",
        r"^(?!.*(?:hours|description|categor|logo|e-?mail|phone))"
        r".*(?:company|business|organi[sz]ation|firm)",
        resolve_company,
    ),
    FieldRule(
        "phone",
        r"^(?!.*whats.?app)"
        r".*(?:phone|mobile|(?:^|[^a-z])tel(?![a-z])|contact.?number)",
        lambda s: s.phone,
    ),
    FieldRule("whatsapp", r"whats.?app", lambda s: s.whatsapp),
    FieldRule(
        "description",
        r"^(?!.*(?:meta|seo|page|author|product))"
        r".*(?:description|desc|about|summary)",
        resolve_description,
    ),
    FieldRule("category", r"categor|industry|niche", lambda s: s.category),
    FieldRule(
        "keywords",
        r"^(?!.*(?:article|post|content)).*(?:keyword|tags)",
        resolve_keywords,
    ),
    FieldRule("meta_title", r"(?:meta|seo|page).?title", resolve_meta_title),
    FieldRule(
        "meta_description",
        r"(?:meta|seo|page).?desc",
        resolve_description,
    ),
    FieldRule(
        "address",
        r"^(?!.*(?:e-?mail|web|url)).*(?:address|street|addr)",
        resolve_address,
    ),
    FieldRule("city", r"city|town", lambda s: s.address.city),
    FieldRule("state", r"state|province|region", lambda s: s.address.state),
    FieldRule("country", r"country|nation", lambda s: s.address.country),
    FieldRule(
        "postal_code",
        r"zip|postal|post.?code|pin.?code",
        lambda s: s.address.pincode,
    ),
    FieldRule("facebook", r"facebook", lambda s: s.social.facebook),
    FieldRule("twitter", r"twitter", lambda s: s.social.twitter),
    FieldRule("instagram", r"instagram", lambda s: s.social.instagram),
    FieldRule("linkedin", r"linked.?in", lambda s: s.social.linkedin),
    FieldRule("youtube", r"you.?tube", lambda s: s.social.youtube),
    FieldRule(
        "article_title",
        r"(?:article|post|content).?title|headline",
        lambda s: s.article_submission.article_title,
    ),
    FieldRule(
        "article_content",
        r"(?:article|post).?(?:content|body|text)|\bcontent\b|\bbody\b",
        lambda s: s.article_submission.article_content,
    ),
    FieldRule(
        "author_name",
        r"^(?!.*bio).*(?:author|writer)",
        lambda s: s.article_submission.author_name,
    ),
    FieldRule("author_bio", r"bio", lambda s: s.article_submission.author_bio),
    FieldRule(
        "article_tags",
        r"(?:article|post|content).?tags",
        lambda s: _join(s.article_submission.tags),
    ),
    FieldRule(
        "product_name",
        r"^(?!.*(?:image|img|photo|picture)).*(?:product|item|listing)",
        lambda s: s.classified.product_name,
    ),
    FieldRule("price", r"price|cost|amount", lambda s: s.classified.price),
    FieldRule("condition", r"condition", lambda s: s.classified.condition),
    FieldRule(
        "product_image",
        r"^(?!.*logo).*(?:image|img|photo|picture)",
        lambda s: s.classified.product_image_url,
    ),
    FieldRule(
        "business_hours",
        r"hours|timings?|opening",
        lambda s: s.business_hours,
    ),
    FieldRule(
        "established_year",
        r"establish|founded|since|year",
        lambda s: s.established_year,
    ),
    FieldRule("logo", r"logo", lambda s: s.logo_image_url),
)

# Keys only reachable through a declared field (no heuristic pattern)
_DECLARED_ONLY: dict[str, Resolver] = {
    "building": lambda s: s.address.building,
    "address_line1": lambda s: s.address.address_line1,
    "address_line2": lambda s: s.address.address_line2,
    "address_line3": lambda s: s.address.address_line3,
    "district": lambda s: s.address.district,
    "meta_keywords": lambda s: _join(s.seo_metadata.keywords),
    "target_keywords": lambda s: _join(s.seo_metadata.target_keywords),
    "sitemap_url": lambda s: s.seo_metadata.sitemap_url,
    "robots_url": lambda s: s.seo_metadata.robots_url,
}

RESOLVERS: dict[str, Resolver] = {
    **{rule.key: rule.resolve for rule in FIELD_RULES},
    **_DECLARED_ONLY,
}

# Common directory field names mapped to resolver keys
DECLARED_ALIASES: dict[str, str] = {
    "project_name": "name",
    "site_name": "name",
    "website_name": "name",
    "business_name": "company",
    "company_name": "company",
    "organization": "company",
    "website": "url",
    "website_url": "url",
    "site_url": "url",
    "homepage": "url",
    "link": "url",
    "contact_email": "email",
    "email_address": "email",
    "mail": "email",
    "mobile": "phone",
    "telephone": "phone",
    "contact_number": "phone",
    "phone_number": "phone",
    "about": "description",
    "business_description": "description",
    "summary": "description",
    "tags": "keywords",
    "seo_keywords": "meta_keywords",
    "focus_keywords": "target_keywords",
    "seo_title": "meta_title",
    "page_title": "meta_title",
    "seo_description": "meta_description",
    "page_description": "meta_description",
    "street": "address_line1",
    "address1": "address_line1",
    "address2": "address_line2",
    "zip": "postal_code",
    "zipcode": "postal_code",
    "zip_code": "postal_code",
    "pincode": "postal_code",
    "pin_code": "postal_code",
    "postcode": "postal_code",
    "province": "state",
    "sitemap": "sitemap_url",
    "robots": "robots_url",
    "robots_txt": "robots_url",
    "fb": "facebook",
    "post_title": "article_title",
    "content_title": "article_title",
    "content": "article_content",
    "post_content": "article_content",
    "article_body": "article_content",
    "author": "author_name",
    "writer": "author_name",
    "bio": "author_bio",
    "post_tags": "article_tags",
    "product": "product_name",
    "item": "product_name",
    "listing_title": "product_name",
    "cost": "price",
    "product_image_url": "product_image",
    "image": "product_image",
    "photo": "product_image",
    "hours": "business_hours",
    "opening_hours": "business_hours",
    "year": "established_year",
    "founded": "established_year",
    "logo_url": "logo",
    "logo_image_url": "logo",
}


def normalize_field_name(name: str) -> str:
    """Lowercase and collapse separators to underscores.

    "Company-Name", "company name" and "company.name" all become
    "company_name".
    """
    return _SEPARATORS.sub("_", name.strip().lower()).strip("_")


# =============================================================================
# Resolution
# =============================================================================


@dataclass(frozen=True)
class ResolvedRule:
    """A rule with its value already resolved for one snapshot.

    This is the form shipped to the browser: patterns are strings and
    values are final.
    """

    key: str
    pattern: str
    value: str

    def matches(self, text: str) -> bool:
        return compile_pattern(self.pattern).search(text) is not None


def resolve_rules(snapshot: ProjectSnapshot) -> tuple[ResolvedRule, ...]:
    """Resolve every rule against a snapshot, preserving order.

    Rules whose value resolves empty are dropped; an empty value never
    matches.

    Args:
        snapshot: Project data.

    Returns:
        Ordered tuple of rules with non-empty values.
    """
    resolved = []
    for rule in FIELD_RULES:
        value = rule.resolve(snapshot)
        if value:
            resolved.append(ResolvedRule(rule.key, rule.pattern, value))
    return tuple(resolved)


def resolve_declared_value(name: str, snapshot: ProjectSnapshot) -> tuple[str, str]:
    """Resolve the value for a directory's declared field name.

    Lookup order:
    1. Project custom field whose normalized key equals the normalized name
    2. Exact resolver key ("email", "meta_title", "sitemap_url")
    3. Alias table ("website" -> url, "zip" -> postal_code)
    4. First heuristic rule whose pattern matches the name and whose value
       is non-empty

    Args:
        name: The declared form field name.
        snapshot: Project data.

    Returns:
        Tuple of (resolver key, value). The key is "custom" for a custom
        field. Both are empty when nothing resolves.
    """
    normalized = normalize_field_name(name)
    if not normalized or len(normalized) > _MAX_FIELD_NAME_LENGTH:
        return "", ""

    for custom in snapshot.custom_fields:
        if normalize_field_name(custom.key) == normalized and custom.value.strip():
            return CUSTOM_FIELD_KEY, custom.value

    key = normalized if normalized in RESOLVERS else DECLARED_ALIASES.get(normalized)
    if key is not None:
        return key, RESOLVERS[key](snapshot)

    for rule in FIELD_RULES:
        if rule.matches(name):
            value = rule.resolve(snapshot)
            if value:
                return rule.key, value
    return "", ""
