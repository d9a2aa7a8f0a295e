"""Design specification extraction and defaulting.

A spec is read from the concept image with a schema-directed vision call.
Whatever the model gets wrong is filled in field by field, first from the
brand colors and then from fixed defaults. If the call fails outright, or
nothing usable comes back, the spec is defaulted from the brand guidelines
alone.
"""

from typing import Any

import structlog

from concierge.models.design_spec import (
    DEFAULT_SECTIONS,
    KNOWN_FONTS,
    DesignSpecification,
    canonical_font,
    is_css_length,
    normalize_hex,
)
from concierge.models.lead import BrandGuidelines
from concierge.services import ai_service
from concierge.services.json_recovery import Recovered

logger = structlog.get_logger()

FALLBACK_COLORS = ("#D4AF37", "#4A4A4A", "#F9F6F0")
DEFAULT_BACKGROUND = "#FFFFFF"
DEFAULT_TEXT = "#1A1A1A"

_STRING = {"type": "string"}

DESIGN_SPEC_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "colors": {
            "type": "object",
            "properties": {
                "primary": {"type": "string", "description": "Primary brand color hex code"},
                "secondary": {"type": "string", "description": "Secondary color hex code"},
                "accent": {"type": "string", "description": "Accent/CTA color hex code"},
                "background": {"type": "string", "description": "Main background color hex code"},
                "text": {"type": "string", "description": "Primary text color hex code"},
                "exactHexCodes": {
                    "type": "array",
                    "items": _STRING,
                    "description": "All hex codes found in design",
                },
            },
            "required": ["primary", "secondary", "accent", "background", "text", "exactHexCodes"],
        },
        "typography": {
            "type": "object",
            "properties": {
                "headingFont": {"type": "string", "description": "Font family for headings"},
                "bodyFont": {"type": "string", "description": "Font family for body text"},
                "baseFontSize": {"type": "string", "description": "Base font size e.g. 16px"},
                "headingSizes": {
                    "type": "object",
                    "properties": {"h1": _STRING, "h2": _STRING, "h3": _STRING},
                    "required": ["h1", "h2", "h3"],
                },
            },
            "required": ["headingFont", "bodyFont", "baseFontSize", "headingSizes"],
        },
        "layout": {
            "type": "object",
            "properties": {
                "maxWidth": {"type": "string", "description": "Container max width e.g. 1200px"},
                "sectionPadding": {"type": "string", "description": "Vertical padding between sections"},
                "gridColumns": {"type": "number", "description": "Number of grid columns"},
                "gutterWidth": {"type": "string", "description": "Gap between grid items"},
            },
            "required": ["maxWidth", "sectionPadding", "gridColumns", "gutterWidth"],
        },
        "components": {
            "type": "object",
            "properties": {
                "header": {
                    "type": "object",
                    "properties": {
                        "style": {"type": "string", "description": "fixed, sticky, or static"},
                        "logoPlacement": {"type": "string", "description": "left or center"},
                    },
                    "required": ["style", "logoPlacement"],
                },
                "hero": {
                    "type": "object",
                    "properties": {
                        "height": {"type": "string", "description": "Hero section height"},
                        "alignment": {"type": "string", "description": "left, center, or right"},
                    },
                    "required": ["height", "alignment"],
                },
                "buttons": {
                    "type": "object",
                    "properties": {
                        "borderRadius": {"type": "string", "description": "Button border radius"},
                        "style": {"type": "string", "description": "solid, outline, or ghost"},
                    },
                    "required": ["borderRadius", "style"],
                },
                "cards": {
                    "type": "object",
                    "properties": {
                        "borderRadius": {"type": "string", "description": "Card border radius"},
                        "shadow": {"type": "string", "description": "Card shadow style"},
                    },
                    "required": ["borderRadius", "shadow"],
                },
            },
            "required": ["header", "hero", "buttons", "cards"],
        },
        "sections": {
            "type": "array",
            "description": "List of sections in order",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string", "description": "Section type: hero, about, services, etc."},
                    "order": {"type": "number", "description": "Order in page (1-based)"},
                },
                "required": ["type", "order"],
            },
        },
    },
    "required": ["colors", "typography", "layout", "components", "sections"],
}

EXTRACTION_PROMPT = """Analyze this website concept mockup for "{business_name}" and extract PRECISE design specifications.

CRITICAL: Extract EXACT values - do not approximate or generalize. Ignore any device frame (laptop, phone) around the page.

Context:
- Brand colors provided: {brand_colors}
- Brand tone: {tone}

Required Analysis:

1. COLORS: Identify ALL hex color codes visible in the design.
   - Primary: main brand color used for headers and important elements
   - Secondary: supporting color for backgrounds and secondary elements
   - Accent: call-to-action buttons, links, highlights
   - Background: main page background color
   - Text: primary text color
   - List ALL unique hex codes found in the design

2. TYPOGRAPHY: heading font and body font (best match from: {fonts}),
   base font size, and H1/H2/H3 sizes as CSS lengths (e.g. "48px").

3. LAYOUT: container max width, vertical section padding, number of grid
   columns and gutter width.

4. COMPONENTS:
   - Header: fixed/sticky/static, logo placement left/center
   - Hero: height, text alignment left/center/right
   - Buttons: border radius, style solid/outline/ghost
   - Cards: border radius, shadow style

5. SECTIONS: list ALL visible sections in order from top to bottom.
   Types include: hero, features, services, about, testimonials, team, pricing, contact, cta, gallery, faq, stats

Return the extracted data using the structured_output tool."""


def _pick_color(*candidates: Any) -> str:
    for candidate in candidates:
        normalized = normalize_hex(candidate)
        if normalized:
            return normalized
    raise ValueError("No usable color among candidates")


def _pick_font(value: Any, default: str) -> str:
    return canonical_font(value) or default


def _pick_length(value: Any, default: str) -> str:
    return value.strip() if is_css_length(value) else default


def _pick_text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _pick_columns(value: Any, default: int = 12) -> int:
    try:
        columns = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return columns if 1 <= columns <= 24 else default


def _section(value: Any, position: int) -> dict[str, Any] | None:
    if not isinstance(value, dict):
        return None
    section_type = value.get("type")
    if not isinstance(section_type, str) or not section_type.strip():
        return None
    try:
        order = int(float(value.get("order")))
    except (TypeError, ValueError, OverflowError):
        order = position
    return {"type": section_type.strip().lower(), "order": max(order, 1), "required_content": []}


def _brand_colors(brand: BrandGuidelines | None) -> list[str | None]:
    colors: list[str | None] = list(brand.colors) if brand else []
    return (colors + [None, None, None])[:3]


def _section_list(raw: Any) -> list[dict[str, Any]]:
    sections = []
    if isinstance(raw, list):
        for position, value in enumerate(raw, start=1):
            section = _section(value, position)
            if section:
                sections.append(section)
    if not sections:
        sections = [
            {"type": section_type, "order": position, "required_content": []}
            for position, section_type in enumerate(DEFAULT_SECTIONS, start=1)
        ]
    return sections


def build_design_spec(extracted: dict[str, Any], brand: BrandGuidelines | None = None) -> DesignSpecification:
    """Build a spec from (possibly partial) extracted data.

    Each missing or invalid field falls back on its own: colors to the brand
    colors then fixed defaults, everything else to fixed defaults.
    """

    def part(data: Any, key: str) -> dict[str, Any]:
        value = data.get(key) if isinstance(data, dict) else None
        return value if isinstance(value, dict) else {}

    colors = part(extracted, "colors")
    typography = part(extracted, "typography")
    heading_sizes = part(typography, "headingSizes")
    layout = part(extracted, "layout")
    components = part(extracted, "components")
    header = part(components, "header")
    hero = part(components, "hero")
    buttons = part(components, "buttons")
    cards = part(components, "cards")
    brand_primary, brand_secondary, brand_accent = _brand_colors(brand)

    return DesignSpecification(
        colors={
            "primary": _pick_color(colors.get("primary"), brand_primary, FALLBACK_COLORS[0]),
            "secondary": _pick_color(colors.get("secondary"), brand_secondary, FALLBACK_COLORS[1]),
            "accent": _pick_color(colors.get("accent"), brand_accent, FALLBACK_COLORS[2]),
            "background": _pick_color(colors.get("background"), DEFAULT_BACKGROUND),
            "text": _pick_color(colors.get("text"), DEFAULT_TEXT),
            "exact_hex_codes": colors.get("exactHexCodes") or [],
        },
        typography={
            "heading_font": _pick_font(typography.get("headingFont"), "Playfair Display"),
            "body_font": _pick_font(typography.get("bodyFont"), "Inter"),
            "base_font_size": _pick_length(typography.get("baseFontSize"), "16px"),
            "heading_sizes": {
                "h1": _pick_length(heading_sizes.get("h1"), "48px"),
                "h2": _pick_length(heading_sizes.get("h2"), "36px"),
                "h3": _pick_length(heading_sizes.get("h3"), "24px"),
            },
        },
        layout={
            "max_width": _pick_length(layout.get("maxWidth"), "1200px"),
            "section_padding": _pick_length(layout.get("sectionPadding"), "80px"),
            "grid_columns": _pick_columns(layout.get("gridColumns")),
            "gutter_width": _pick_length(layout.get("gutterWidth"), "24px"),
        },
        components={
            "header": {
                "style": _pick_text(header.get("style"), "fixed"),
                "logo_placement": _pick_text(header.get("logoPlacement"), "left"),
            },
            "hero": {
                "height": _pick_text(hero.get("height"), "100vh"),
                "alignment": _pick_text(hero.get("alignment"), "center"),
            },
            "buttons": {
                "border_radius": _pick_text(buttons.get("borderRadius"), "8px"),
                "style": _pick_text(buttons.get("style"), "solid"),
            },
            "cards": {
                "border_radius": _pick_text(cards.get("borderRadius"), "12px"),
                "shadow": _pick_text(cards.get("shadow"), "lg"),
            },
        },
        content={"sections": _section_list(extracted.get("sections"))},
        source="extracted",
    )


def extract_design_spec(
    concept_image: str,
    business_name: str,
    brand: BrandGuidelines | None = None,
) -> DesignSpecification:
    """Extract a design spec from a concept image, defaulting on any failure.

    Args:
        concept_image: The concept mockup as a base64 data URL.
        business_name: Business the mockup was made for.
        brand: Brand guidelines from the analyze step.

    Returns:
        Spec tagged ``extracted``, or ``default`` if extraction failed.
    """
    prompt = EXTRACTION_PROMPT.format(
        business_name=business_name,
        brand_colors=", ".join(brand.colors) if brand and brand.colors else "Not specified",
        tone=brand.tone if brand and brand.tone else "Professional",
        fonts=", ".join(KNOWN_FONTS),
    )

    try:
        generation = ai_service.generate_json(
            prompt,
            model=ai_service.VISION_MODEL,
            images=[concept_image],
            response_schema=DESIGN_SPEC_SCHEMA,
            max_tokens=4000,
            temperature=0.2,
        )
    except Exception as e:
        logger.warning("Design extraction call failed, using defaults", business=business_name, error=str(e))
        return create_default_design_spec(brand)

    if not isinstance(generation.data, Recovered) or not isinstance(generation.data.value, dict):
        logger.warning("Design extraction returned no data, using defaults", business=business_name)
        return create_default_design_spec(brand)

    try:
        spec = build_design_spec(generation.data.value, brand)
    except Exception as e:
        logger.warning("Extracted design spec invalid, using defaults", business=business_name, error=str(e))
        return create_default_design_spec(brand)

    logger.info(
        "Design spec extracted",
        business=business_name,
        sections=len(spec.content.sections),
        colors=len(spec.colors.exact_hex_codes),
    )
    return spec


def create_default_design_spec(brand: BrandGuidelines | None = None) -> DesignSpecification:
    """Build a spec from brand guidelines alone.

    Tone keywords pick the variant: luxury/elegant gets serif headings and
    roomier spacing, modern/minimal gets Inter and tight radii, friendly/warm
    gets rounded buttons.
    """
    tone = (brand.tone if brand else "").lower()
    is_luxury = "luxury" in tone or "elegant" in tone
    is_modern = "modern" in tone or "minimal" in tone
    is_friendly = "friendly" in tone or "warm" in tone

    brand_primary, brand_secondary, brand_accent = _brand_colors(brand)
    observed = [color for color in (brand.colors if brand else []) if normalize_hex(color)]

    if is_luxury:
        heading_font = "Playfair Display"
    elif is_modern:
        heading_font = "Inter"
    else:
        heading_font = "Poppins"

    if is_modern:
        body_font, button_radius = "Inter", "4px"
    elif is_friendly:
        body_font, button_radius = "Open Sans", "24px"
    else:
        body_font, button_radius = "Lato", "8px"

    return DesignSpecification(
        colors={
            "primary": _pick_color(brand_primary, FALLBACK_COLORS[0]),
            "secondary": _pick_color(brand_secondary, FALLBACK_COLORS[1]),
            "accent": _pick_color(brand_accent, FALLBACK_COLORS[2]),
            "background": DEFAULT_BACKGROUND,
            "text": DEFAULT_TEXT,
            "exact_hex_codes": observed,
        },
        typography={
            "heading_font": heading_font,
            "body_font": body_font,
            "base_font_size": "16px",
            "heading_sizes": {"h1": "56px" if is_luxury else "48px", "h2": "36px", "h3": "24px"},
        },
        layout={
            "max_width": "1200px",
            "section_padding": "100px" if is_luxury else "80px",
            "grid_columns": 12,
            "gutter_width": "24px",
        },
        components={
            "header": {"style": "fixed", "logo_placement": "center" if is_luxury else "left"},
            "hero": {"height": "100vh", "alignment": "center" if is_luxury else "left"},
            "buttons": {"border_radius": button_radius, "style": "solid"},
            "cards": {"border_radius": "8px" if is_modern else "12px", "shadow": "xl" if is_luxury else "lg"},
        },
        content={"sections": _section_list(None)},
        source="default",
    )
