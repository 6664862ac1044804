"""
Directory business services.

The only write path here is the sponsor signup: a sponsor checkout carries
the business profile as JSON metadata, and the business is created once the
subscription is confirmed.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from django.conf import settings
from django.utils.text import slugify

from core.services import BaseService, ServiceResult
from directory.models import Business

logger = logging.getLogger(__name__)

REQUIRED_SIGNUP_FIELDS = ("name", "city")

# Checkout metadata key -> Business field
OPTIONAL_SIGNUP_FIELDS = {
    "phone": "phone",
    "email": "email",
    "logoUrl": "logo_url",
    "address": "address",
    "photos": "photos",
    "hoursOfOperation": "hours_of_operation",
    "shortDescription": "short_description",
    "fullDescription": "full_description",
}


def parse_signup_data(raw: Any) -> dict[str, Any] | None:
    """
    Decode business signup data from checkout metadata.

    Processor metadata values are strings, so the profile usually arrives
    JSON-encoded. Already-decoded dicts are passed through.

    Returns:
        The decoded dict, or None if the value is missing or malformed
    """
    if not raw:
        return None
    if isinstance(raw, dict):
        return raw
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Business signup data is not valid JSON")
        return None
    return data if isinstance(data, dict) else None


def normalize_website(website: str | None) -> str | None:
    """Prefix a scheme-less website with https://."""
    if not website:
        return None
    website = website.strip()
    if not website:
        return None
    if website.startswith(("http://", "https://")):
        return website
    return f"https://{website}"


def unique_business_slug(name: str) -> str:
    """
    Build a slug for name that is not yet taken.

    Collisions get a numeric suffix: "corner-cafe", "corner-cafe-1", ...
    """
    base = slugify(name)[:200] or "business"
    slug = base
    counter = 1
    while Business.objects.filter(slug=slug).exists():
        slug = f"{base}-{counter}"
        counter += 1
    return slug


class BusinessService(BaseService):
    """Directory business operations."""

    @classmethod
    def create_from_signup(
        cls, member_id: uuid.UUID, data: dict[str, Any]
    ) -> ServiceResult[Business]:
        """
        Create a directory business from sponsor signup data.

        Args:
            member_id: Sponsor who will own the business
            data: Decoded signup profile (camelCase keys from checkout)

        Returns:
            ServiceResult with the new Business, or a failure with one of:
            INCOMPLETE_BUSINESS_DATA, BUSINESS_LIMIT_REACHED
        """
        missing = [
            name for name in REQUIRED_SIGNUP_FIELDS if not str(data.get(name) or "").strip()
        ]
        raw_categories = data.get("categories")
        if not isinstance(raw_categories, list):
            raw_categories = []
        categories = [c.strip() for c in raw_categories if isinstance(c, str) and c.strip()]
        if not categories:
            missing.append("categories")
        if missing:
            return ServiceResult.failure(
                "Business signup data is incomplete",
                error_code="INCOMPLETE_BUSINESS_DATA",
                errors={name: ["This field is required."] for name in missing},
            )

        owned = Business.objects.filter(owner_id=member_id).count()
        if owned >= settings.MAX_BUSINESSES_PER_MEMBER:
            return ServiceResult.failure(
                "Member already owns the maximum number of businesses",
                error_code="BUSINESS_LIMIT_REACHED",
            )

        name = str(data["name"]).strip()
        fields = {
            target: data[source]
            for source, target in OPTIONAL_SIGNUP_FIELDS.items()
            if data.get(source)
        }

        with cls.atomic():
            business = Business.objects.create(
                owner_id=member_id,
                name=name,
                slug=unique_business_slug(name),
                city=str(data["city"]).strip(),
                categories=categories[: settings.MAX_BUSINESS_CATEGORIES],
                website=normalize_website(data.get("website")),
                **fields,
            )

        cls.get_logger().info(
            "Created business from sponsor signup",
            extra={
                "business_id": str(business.id),
                "member_id": str(member_id),
                "slug": business.slug,
            },
        )
        return ServiceResult.success(business)
