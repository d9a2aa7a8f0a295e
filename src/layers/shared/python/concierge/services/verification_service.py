"""Conformance verification of generated websites against their design spec.

Scoring is delegated to a vision model given the spec, the markup and (when
available) the concept image. A response that can't be read is reported as
``unavailable``; it is never approved. Two local checks complement the model
call: ``quick_verify`` for the handful of things a build must contain, and
``analyze_code`` for a keyword-level score when no model call is wanted.
"""

from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from concierge.models.design_spec import DesignSpecification
from concierge.models.verification import (
    Discrepancy,
    MissingAsset,
    VerificationReport,
    VerificationResult,
)
from concierge.services import ai_service
from concierge.services.json_recovery import Recovered

logger = structlog.get_logger()

# Markup beyond this is not sent to the verifier
MAX_HTML_CHARS = 8000

_SCORE = {"type": "number", "description": "Match percentage 0-100"}

VERIFICATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "overallMatchScore": _SCORE,
        "colorMatchScore": _SCORE,
        "layoutMatchScore": _SCORE,
        "typographyMatchScore": _SCORE,
        "discrepancies": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "element": {"type": "string", "description": "Element with discrepancy"},
                    "expected": {"type": "string", "description": "Expected value"},
                    "actual": {"type": "string", "description": "Actual value found"},
                    "severity": {"type": "string", "enum": ["critical", "major", "minor"]},
                },
                "required": ["element", "expected", "actual", "severity"],
            },
        },
        "recommendations": {
            "type": "array",
            "items": {"type": "string"},
            "description": "List of recommendations to fix discrepancies",
        },
        "missingAssets": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string"},
                    "description": {"type": "string"},
                    "placement": {"type": "string"},
                    "required": {"type": "boolean"},
                },
                "required": ["type", "description", "placement", "required"],
            },
        },
    },
    "required": [
        "overallMatchScore",
        "colorMatchScore",
        "layoutMatchScore",
        "typographyMatchScore",
        "discrepancies",
        "recommendations",
        "missingAssets",
    ],
}

DEVICE_FRAME_NOTE = """**** CRITICAL - IGNORE DEVICE FRAMES ****
If the concept image shows the website on a laptop, computer, phone, or tablet:
- COMPLETELY IGNORE the device frame
- Compare ONLY the website content shown inside the screen
- Do NOT flag discrepancies related to the device itself"""


def build_verification_prompt(html: str, spec: DesignSpecification, with_image: bool) -> str:
    """Describe the spec and the markup for the verifier."""
    colors = spec.colors
    typography = spec.typography
    components = spec.components
    sections = "\n".join(f"{s.order}. {s.type}" for s in spec.ordered_sections())
    hex_codes = ", ".join(colors.exact_hex_codes) or "None recorded"

    assets = []
    for name, slot in (("Logo", spec.assets.logo), ("Hero image", spec.assets.hero_image)):
        if slot and slot.url:
            assets.append(f"- {name}: {slot.url} ({slot.placement or 'any placement'})")
        else:
            assets.append(f"- {name}: not supplied")
    exact_text = "\n".join(f'- {slot}: "{text}"' for slot, text in spec.content.exact_text.items())

    parts = ["You are a design QA specialist. Compare the generated website below against these design specifications."]
    if with_image:
        parts.append("The attached image is the approved concept mockup.\n\n" + DEVICE_FRAME_NOTE)

    parts.append(f"""## DESIGN SPECIFICATIONS TO VERIFY:

### Colors:
- Primary: {colors.primary}
- Secondary: {colors.secondary}
- Accent: {colors.accent}
- Background: {colors.background}
- Text: {colors.text}
- All colors in the concept: {hex_codes}

### Typography:
- Heading Font: {typography.heading_font}
- Body Font: {typography.body_font}
- Base Size: {typography.base_font_size}
- H1/H2/H3: {typography.heading_sizes.h1} / {typography.heading_sizes.h2} / {typography.heading_sizes.h3}

### Layout:
- Max Width: {spec.layout.max_width}
- Section Padding: {spec.layout.section_padding}
- Grid: {spec.layout.grid_columns} columns, {spec.layout.gutter_width} gutters

### Components:
- Header: {components.header.style}, logo {components.header.logo_placement}
- Hero: {components.hero.height}, aligned {components.hero.alignment}
- Buttons: {components.buttons.style}, radius {components.buttons.border_radius}
- Cards: radius {components.cards.border_radius}, shadow {components.cards.shadow}

### Expected Sections (in order):
{sections or "None specified"}

### Required Assets:
{chr(10).join(assets)}""")

    if exact_text:
        parts.append(f"### Exact Text:\n{exact_text}")

    parts.append(f"""## GENERATED HTML CODE TO VERIFY:
{html[:MAX_HTML_CHARS]}

## YOUR TASK:
1. Compare the code against the specifications above
2. Score each category from 0-100
3. List every discrepancy with severity critical, major, or minor
4. Provide recommendations to fix the issues
5. Identify any missing assets""")

    return "\n\n".join(parts)


def _dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def verify_website_against_spec(
    html: str,
    spec: DesignSpecification,
    concept_image: str | None = None,
) -> VerificationReport:
    """Score a generated website against its design spec.

    Args:
        html: The generated HTML document.
        spec: The spec the site was built from.
        concept_image: Concept mockup as a data URL, for visual comparison.

    Returns:
        Report with status ``passed``, ``needs_review`` or ``unavailable``.
    """
    prompt = build_verification_prompt(html, spec, with_image=concept_image is not None)
    generation = ai_service.generate_json(
        prompt,
        model=ai_service.VISION_MODEL,
        images=[concept_image] if concept_image else (),
        response_schema=VERIFICATION_SCHEMA,
        max_tokens=4000,
        temperature=0.2,
    )

    data = generation.data
    if not isinstance(data, Recovered):
        logger.warning("Verification unavailable, no data in response")
        return VerificationReport.unavailable("The verifier returned no readable result")

    payload = data.value
    if not isinstance(payload, dict) or "overallMatchScore" not in payload:
        logger.warning("Verification unavailable, unusable payload", payload_type=type(payload).__name__)
        return VerificationReport.unavailable("The verifier returned an unusable result")

    try:
        result = VerificationResult.from_wire(
            {
                "overallMatchScore": payload.get("overallMatchScore"),
                "colorMatchScore": payload.get("colorMatchScore"),
                "layoutMatchScore": payload.get("layoutMatchScore"),
                "typographyMatchScore": payload.get("typographyMatchScore"),
                "discrepancies": _dicts(payload.get("discrepancies")),
                "missingAssets": _dicts(payload.get("missingAssets")),
                "recommendations": payload.get("recommendations"),
            }
        )
    except (PydanticValidationError, TypeError, ValueError, OverflowError) as e:
        logger.warning("Verification unavailable, malformed payload", error=str(e))
        return VerificationReport.unavailable("The verifier returned a malformed result")

    report = VerificationReport.from_result(result)

    logger.info(
        "Website verified",
        status=report.status,
        overall=result.overall_match_score,
        discrepancies=len(result.discrepancies),
    )
    return report


def _font_present(html_lower: str, font: str) -> bool:
    font_lower = font.lower()
    return font_lower in html_lower or font_lower.replace(" ", "+") in html_lower


def quick_verify(html: str, spec: DesignSpecification) -> tuple[bool, list[str]]:
    """Check the critical elements a build must contain.

    Returns:
        Tuple of (passed, issues).
    """
    issues: list[str] = []
    html_lower = html.lower()

    if spec.colors.primary.lower() not in html_lower:
        issues.append(f"Primary color {spec.colors.primary} not found")
    if spec.colors.accent.lower() not in html_lower:
        issues.append(f"Accent color {spec.colors.accent} not found")
    if not _font_present(html_lower, spec.typography.heading_font):
        issues.append(f'Heading font "{spec.typography.heading_font}" not imported')
    if "tailwind" not in html_lower:
        issues.append("Tailwind CSS CDN not found")

    return not issues, issues


# Markup hints that a section type is present
SECTION_KEYWORDS = {
    "header": ("<header", "<nav", "navbar"),
    "hero": ("hero", "banner", "jumbotron"),
    "features": ("feature", "benefit"),
    "services": ("service", "offering"),
    "testimonials": ("testimonial", "review", "quote"),
    "contact": ("contact", "form", "email"),
    "footer": ("<footer", "copyright"),
}


def analyze_code(html: str, spec: DesignSpecification) -> VerificationResult:
    """Keyword-level verification of the markup, without a model call.

    Weights: colors 25%, typography 20%, sections 30%, exact text 25%.
    """
    html_lower = html.lower()
    discrepancies: list[Discrepancy] = []
    recommendations: list[str] = []

    colors = spec.colors
    color_checks = (
        ("primary", colors.primary),
        ("secondary", colors.secondary),
        ("accent", colors.accent),
        ("background", colors.background),
        ("text", colors.text),
    )
    color_matches = 0
    for name, expected in color_checks:
        if expected.lower() in html_lower:
            color_matches += 1
        else:
            discrepancies.append(
                Discrepancy(element=f"{name} color", expected=expected, actual="Not found in HTML", severity="major")
            )
            recommendations.append(f"Add the {name} color ({expected}) to the website")
    color_score = round(color_matches / len(color_checks) * 100)

    font_matches = 0
    for label, font in (("Heading font", spec.typography.heading_font), ("Body font", spec.typography.body_font)):
        if _font_present(html_lower, font):
            font_matches += 1
        else:
            discrepancies.append(Discrepancy(element=label, expected=font, actual="Not found", severity="major"))
            recommendations.append(f'Import and use "{font}" for {label.lower().replace(" font", "")} text')
    typography_score = round(font_matches / 2 * 100)

    sections = spec.ordered_sections()
    section_matches = 0
    for section in sections:
        keywords = SECTION_KEYWORDS.get(section.type.lower(), (section.type.lower(),))
        if any(keyword in html_lower for keyword in keywords):
            section_matches += 1
        else:
            discrepancies.append(
                Discrepancy(
                    element=f"{section.type} section",
                    expected=f"Section at position {section.order}",
                    actual="Not found",
                    severity="minor",
                )
            )
    layout_score = round(section_matches / len(sections) * 100) if sections else 100

    text_checks = [(slot, text) for slot, text in spec.content.exact_text.items() if text and text.strip()]
    text_matches = 0
    for slot, text in text_checks:
        if text in html:
            text_matches += 1
        else:
            discrepancies.append(
                Discrepancy(element=slot, expected=text, actual="Text not found in HTML", severity="major")
            )
            recommendations.append(f'Add exact text: "{text}" to {slot}')
    text_score = round(text_matches / len(text_checks) * 100) if text_checks else 100

    missing_assets = []
    if not (spec.assets.logo and spec.assets.logo.url):
        missing_assets.append(
            MissingAsset(type="logo", description="Business logo image", placement="header", required=True)
        )
    if not (spec.assets.hero_image and spec.assets.hero_image.url):
        missing_assets.append(
            MissingAsset(
                type="hero-image",
                description="Hero section background or featured image",
                placement="hero section",
                required=False,
            )
        )

    overall = round(color_score * 0.25 + typography_score * 0.20 + layout_score * 0.30 + text_score * 0.25)

    return VerificationResult(
        overall_match_score=overall,
        color_match_score=color_score,
        layout_match_score=layout_score,
        typography_match_score=typography_score,
        discrepancies=discrepancies,
        missing_assets=missing_assets,
        recommendations=recommendations,
    )
