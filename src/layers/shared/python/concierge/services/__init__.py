"""Generation, verification and accounting services."""

from concierge.services.credits import CREDIT_COSTS, charge, debit, new_ledger
from concierge.services.feature_gate import (
    PAID_IMAGE_GENERATION,
    CapabilityRequiredError,
    require_capability,
    run_with_capability_selection,
)
from concierge.services.json_recovery import Empty, Recovered, recover_json, safe_parse_json
from concierge.services.url_extraction import extract_business_url, find_logo_url, looks_like_image_url

__all__ = [
    # Credits
    "CREDIT_COSTS",
    "charge",
    "debit",
    "new_ledger",
    # Capability gating
    "PAID_IMAGE_GENERATION",
    "CapabilityRequiredError",
    "require_capability",
    "run_with_capability_selection",
    # JSON recovery
    "Empty",
    "Recovered",
    "recover_json",
    "safe_parse_json",
    # URL extraction
    "extract_business_url",
    "find_logo_url",
    "looks_like_image_url",
]
