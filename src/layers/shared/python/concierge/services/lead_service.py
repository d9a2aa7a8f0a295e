"""Lead discovery and the per-lead brand, campaign and pitch steps."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from concierge.models.design_spec import normalize_hex
from concierge.models.lead import BrandGuidelines, CampaignStrategy, CreateLeadRequest, EmailDraft
from concierge.models.usage import UsageLedger
from concierge.services import ai_service
from concierge.services.json_recovery import Recovered
from concierge.services.url_extraction import extract_business_url
from concierge.utils.exceptions import GenerationError

logger = structlog.get_logger()

MAX_LEADS = 5
LOOKUP_WORKERS = 5

LEADS_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "business_name": {"type": "string", "description": "The actual business name"},
            "location": {"type": "string", "description": "Address or area"},
            "details": {"type": "string", "description": "What they do and why they need a new website"},
            "phone": {"type": ["string", "null"]},
            "email": {"type": ["string", "null"]},
            "website_url": {"type": ["string", "null"], "description": "The business's own website, if any"},
        },
        "required": ["business_name", "location", "details"],
    },
}

BRAND_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "colors": {"type": "array", "items": {"type": "string"}, "description": "3 hex codes"},
        "tone": {"type": "string", "description": "e.g. Friendly, Corporate, Luxury"},
        "suggestions": {"type": "string", "description": "How to improve the brand, under 50 words"},
    },
    "required": ["colors", "tone", "suggestions"],
}

STRATEGY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "strategy_summary": {"type": "string"},
        "content_ideas": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "format": {"type": "string", "enum": ["IMAGE", "VIDEO"]},
                    "platform": {"type": "string"},
                    "description": {"type": "string"},
                    "copy": {"type": "string"},
                },
                "required": ["title", "format", "platform", "description", "copy"],
            },
        },
    },
    "required": ["strategy_summary", "content_ideas"],
}

EMAIL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"subject": {"type": "string"}, "body": {"type": "string"}},
    "required": ["subject", "body"],
}


def _recovered_value(generation: ai_service.Generation) -> Any:
    return generation.data.value if isinstance(generation.data, Recovered) else None


def _unusable(message: str, generation: ai_service.Generation) -> GenerationError:
    """A GenerationError carrying the ledger debited for the wasted call."""
    error = GenerationError(message)
    error.ledger = generation.ledger
    return error


def find_leads(
    query: str,
    location: str,
    ledger: UsageLedger,
) -> tuple[list[CreateLeadRequest], list[dict[str, str]], UsageLedger]:
    """Find local businesses that could use a new website.

    Args:
        query: Business type, e.g. "florist".
        location: Town or area to search.
        ledger: Ledger debited for ``lead_discovery``.

    Returns:
        Tuple of (up to 5 lead candidates, grounding sources, debited ledger).
        A response with no readable leads yields an empty list.
    """
    prompt = f"""Find {MAX_LEADS} real local businesses for "{query}" near "{location}".
For each business, provide their actual name, address, a short description of what they do, and why they might need a new website or marketing.

Also extract their phone number, email address and own website if available in the listing or context.
Only use businesses that appear in the search results above."""

    generation = ai_service.generate_json(
        prompt,
        ledger=ledger,
        operation="lead_discovery",
        model=ai_service.FAST_MODEL,
        response_schema=LEADS_SCHEMA,
        web_search=f"{query} near {location}",
        max_tokens=2000,
    )

    raw = _recovered_value(generation)
    leads: list[CreateLeadRequest] = []
    for entry in raw if isinstance(raw, list) else []:
        if not isinstance(entry, dict):
            continue
        try:
            leads.append(CreateLeadRequest.model_validate(entry))
        except PydanticValidationError as e:
            logger.debug("Skipping malformed lead", error=str(e))
        if len(leads) == MAX_LEADS:
            break

    logger.info("Leads found", query=query, location=location, count=len(leads))
    return leads, generation.response.grounding, generation.ledger


def lookup_website(lead: CreateLeadRequest) -> str | None:
    """Find a lead's own website, skipping social and directory listings."""
    if lead.website_url:
        found = extract_business_url(lead.website_url)
        if found:
            return found

    found = extract_business_url(lead.details)
    if found:
        return found

    results = ai_service.search_web(f'"{lead.business_name}" {lead.location} official website')
    return extract_business_url(results)


def lookup_lead_websites(leads: list[CreateLeadRequest]) -> list[str | None]:
    """Look up every lead's website concurrently.

    Results line up with the input by index, whatever order lookups finish
    in. A failed lookup yields None for that lead.
    """
    results: list[str | None] = [None] * len(leads)
    if not leads:
        return results

    with ThreadPoolExecutor(max_workers=min(LOOKUP_WORKERS, len(leads))) as pool:
        futures = {pool.submit(lookup_website, lead): index for index, lead in enumerate(leads)}
        for future in as_completed(futures):
            index = futures[future]
            try:
                results[index] = future.result()
            except Exception as e:
                logger.warning("Website lookup failed", business=leads[index].business_name, error=str(e))

    logger.info("Lead websites looked up", total=len(leads), found=sum(1 for r in results if r))
    return results


def generate_brand_analysis(
    business_name: str,
    details: str,
    ledger: UsageLedger,
    website_url: str | None = None,
) -> tuple[BrandGuidelines, UsageLedger]:
    """Generate brand guidelines (3 colors, tone, suggestions) for a business.

    Raises:
        GenerationError: If the response holds no usable guidelines.
    """
    prompt = f"""Analyze this business: "{business_name}" ({details}).
Generate branding guidelines for them.

Requirements:
- colors: array of 3 hex codes
- tone: string (e.g. Friendly, Corporate, Luxury)
- suggestions: string (Short paragraph on how to improve their brand, under 50 words)"""

    generation = ai_service.generate_json(
        prompt,
        ledger=ledger,
        operation="brand_analysis",
        model=ai_service.FAST_MODEL,
        response_schema=BRAND_SCHEMA,
        url_context=[website_url] if website_url else (),
        max_tokens=1000,
    )

    raw = _recovered_value(generation)
    if not isinstance(raw, dict):
        raise _unusable("Brand analysis returned no usable guidelines", generation)

    raw_colors = raw.get("colors")
    if not isinstance(raw_colors, list):
        raw_colors = []
    colors = [c for c in (normalize_hex(color) for color in raw_colors) if c][:3]
    guidelines = BrandGuidelines(
        colors=colors,
        tone=str(raw.get("tone") or ""),
        suggestions=str(raw.get("suggestions") or ""),
    )
    logger.info("Brand analysis generated", business=business_name, tone=guidelines.tone)
    return guidelines, generation.ledger


def generate_campaign_strategy(
    business_name: str,
    goal: str,
    platforms: list[str],
    brand: BrandGuidelines | None,
    ledger: UsageLedger,
) -> tuple[CampaignStrategy, UsageLedger]:
    """Plan a marketing campaign with three content ideas.

    Raises:
        GenerationError: If the response holds no strategy.
    """
    prompt = f"""Create a marketing campaign strategy for "{business_name}".
Goal: "{goal}"
Platforms: {", ".join(platforms)}
Brand Tone: {brand.tone if brand and brand.tone else "Professional"}

Generate:
1. "strategy_summary": A paragraph explaining the strategy.
2. "content_ideas": An array of 3 specific content ideas, each with a short
   "title", a "format" (IMAGE or VIDEO), a "platform" from the selected
   platforms, a "description" of the content and the "copy" for the post."""

    generation = ai_service.generate_json(
        prompt,
        ledger=ledger,
        operation="campaign_strategy",
        model=ai_service.FAST_MODEL,
        response_schema=STRATEGY_SCHEMA,
        max_tokens=2000,
    )

    raw = _recovered_value(generation)
    if not isinstance(raw, dict) or not raw.get("strategy_summary"):
        raise _unusable("Campaign strategy came back empty", generation)

    ideas = raw.get("content_ideas")
    if not isinstance(ideas, list):
        ideas = []
    try:
        strategy = CampaignStrategy(
            goal=goal,
            platforms=platforms,
            strategy_summary=str(raw["strategy_summary"]),
            content_ideas=[idea for idea in ideas if isinstance(idea, dict)],
        )
    except PydanticValidationError as e:
        logger.warning("Malformed campaign strategy", error=str(e))
        raise _unusable("Campaign strategy came back malformed", generation) from e
    return strategy, generation.ledger


def generate_pitch_email(
    business_name: str,
    website_url: str | None,
    brand_tone: str,
    ledger: UsageLedger,
    has_concept_image: bool = False,
) -> tuple[EmailDraft, UsageLedger]:
    """Write a cold pitch email for a business.

    Raises:
        GenerationError: If the response has no subject line.
    """
    link_line = (
        f"- I have a live website demo link: {website_url}" if website_url else "- I do not have a live link yet."
    )
    image_line = (
        "- I have attached a visual mockup image of a new website concept for them." if has_concept_image else ""
    )
    prompt = f"""Write a cold email to "{business_name}" to sell website design and social media marketing services.

Context:
- Potential Client: {business_name}
- My Services: Website Design & Social Media Growth
- Tone: {brand_tone or "Professional and Friendly"}

Asset Status:
{link_line}
{image_line}

Instructions:
- If I have a Concept Image, explicitly mention "I've attached a visual concept of what your new site could look like."
- Highlight that we can help them grow their brand online through a modern website and active social media presence.
- If I have a URL, ask them to click the link to see their new site.
- Keep it under 150 words.
- Empathetic, not salesy."""

    generation = ai_service.generate_json(
        prompt,
        ledger=ledger,
        operation="email_pitch",
        model=ai_service.FAST_MODEL,
        response_schema=EMAIL_SCHEMA,
        max_tokens=1000,
    )

    raw = _recovered_value(generation)
    if not isinstance(raw, dict) or not str(raw.get("subject") or "").strip():
        raise _unusable("Pitch email came back without a subject", generation)

    draft = EmailDraft(subject=str(raw["subject"]).strip(), body=str(raw.get("body") or ""))
    logger.info("Pitch email drafted", business=business_name)
    return draft, generation.ledger
