"""Pydantic models for Concierge entities."""

from concierge.models.base import BaseModel, TimestampMixin, WireModel
from concierge.models.design_spec import (
    KNOWN_FONTS,
    DEFAULT_SECTIONS,
    AssetSlot,
    Assets,
    ColorPalette,
    ComponentStyles,
    ContentSpec,
    DesignSpecification,
    Layout,
    SectionSpec,
    Typography,
)
from concierge.models.lead import (
    BrandGuidelines,
    CampaignStrategy,
    ContentIdea,
    CreateLeadRequest,
    EmailDraft,
    HistoryItem,
    Lead,
    LeadStatus,
    UpdateLeadRequest,
)
from concierge.models.usage import CapabilityContext, LedgerEntry, UsageLedger
from concierge.models.verification import (
    PASS_THRESHOLD,
    Discrepancy,
    MissingAsset,
    VerificationReport,
    VerificationResult,
)

__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    "WireModel",
    # Design spec
    "KNOWN_FONTS",
    "DEFAULT_SECTIONS",
    "AssetSlot",
    "Assets",
    "ColorPalette",
    "ComponentStyles",
    "ContentSpec",
    "DesignSpecification",
    "Layout",
    "SectionSpec",
    "Typography",
    # Lead
    "BrandGuidelines",
    "CampaignStrategy",
    "ContentIdea",
    "CreateLeadRequest",
    "EmailDraft",
    "HistoryItem",
    "Lead",
    "LeadStatus",
    "UpdateLeadRequest",
    # Usage
    "CapabilityContext",
    "LedgerEntry",
    "UsageLedger",
    # Verification
    "PASS_THRESHOLD",
    "Discrepancy",
    "MissingAsset",
    "VerificationReport",
    "VerificationResult",
]
