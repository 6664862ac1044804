"""
Directory business model.
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class Business(UUIDPrimaryKeyMixin, BaseModel):
    """
    A local business listed in the directory.

    Fields:
        owner: Member who manages the listing
        name / slug: Display name and unique URL slug
        city: City the business operates in
        categories: Up to MAX_BUSINESS_CATEGORIES category names
        website, phone, email, logo_url, address: Contact details
        photos: List of photo URLs
        hours_of_operation: Free-form opening hours (JSON)
        short_description / full_description: Listing copy
    """

    owner = models.ForeignKey(
        "members.Member",
        on_delete=models.CASCADE,
        related_name="businesses",
        help_text="Member who owns this listing",
    )
    name = models.CharField(max_length=200)
    slug = models.SlugField(
        max_length=220,
        unique=True,
        help_text="Unique URL slug derived from the name",
    )
    city = models.CharField(max_length=120)
    categories = models.JSONField(
        default=list,
        blank=True,
        help_text="Category names (at most two)",
    )

    # ==========================================================================
    # Contact
    # ==========================================================================

    website = models.URLField(max_length=500, null=True, blank=True)
    phone = models.CharField(max_length=40, null=True, blank=True)
    email = models.EmailField(null=True, blank=True)
    logo_url = models.URLField(max_length=500, null=True, blank=True)
    address = models.CharField(max_length=300, null=True, blank=True)

    # ==========================================================================
    # Listing Content
    # ==========================================================================

    photos = models.JSONField(default=list, blank=True)
    hours_of_operation = models.JSONField(null=True, blank=True)
    short_description = models.CharField(max_length=300, null=True, blank=True)
    full_description = models.TextField(null=True, blank=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "Business"
        verbose_name_plural = "Businesses"

    def __str__(self) -> str:
        return f"{self.name} ({self.city})"
