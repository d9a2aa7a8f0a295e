"""Website generation and the AI website editor.

Every call returns a complete single-file HTML document (Tailwind via CDN)
with markdown fences stripped. Billed calls return the debited ledger next
to the markup.
"""

import re

import structlog

from concierge.models.design_spec import DesignSpecification
from concierge.models.usage import UsageLedger
from concierge.models.verification import Discrepancy
from concierge.services import ai_service
from concierge.utils.exceptions import GenerationError

logger = structlog.get_logger()

# Markup beyond these lengths is cut before being sent back to the model
REFINE_CHARS = 15000
EDIT_CHARS = 20000
ELEMENT_CHARS = 500

_FENCE_RE = re.compile(r"```(?:html)?", re.IGNORECASE)

HASH_ROUTER_SCRIPT = """<script>
function showPage(pageId) {
  document.querySelectorAll('.page-section').forEach(s => s.style.display = 'none');
  const page = document.getElementById('page-' + (pageId || 'home'));
  if (page) page.style.display = 'block';
  document.querySelectorAll('.nav-link').forEach(a => a.classList.remove('active'));
  const activeLink = document.querySelector('a[href="#' + (pageId || 'home') + '"]');
  if (activeLink) activeLink.classList.add('active');
}
window.addEventListener('hashchange', () => showPage(location.hash.slice(1)));
document.addEventListener('DOMContentLoaded', () => showPage(location.hash.slice(1) || 'home'));
</script>"""


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences around generated markup."""
    return _FENCE_RE.sub("", text or "").strip()


def _generate_html(
    prompt: str,
    ledger: UsageLedger | None,
    operation: str,
    max_tokens: int,
    model: str = ai_service.DEFAULT_MODEL,
) -> tuple[str, UsageLedger | None]:
    generation = ai_service.generate(
        prompt,
        ledger=ledger,
        operation=operation,
        model=model,
        max_tokens=max_tokens,
        temperature=0.4,
    )
    html = strip_code_fences(generation.response.text)
    if not html:
        error = GenerationError("The model returned no markup")
        error.ledger = generation.ledger
        raise error
    return html, generation.ledger


def build_strict_website_prompt(business_prompt: str, spec: DesignSpecification) -> str:
    """Build a generation prompt that pins the site to the design spec."""
    colors = spec.colors
    typography = spec.typography
    layout = spec.layout
    components = spec.components

    sections_order = "\n".join(
        f"{position}. {section.type.upper()}"
        for position, section in enumerate(spec.ordered_sections(), start=1)
    )
    exact_text = "\n".join(f'- {slot}: "{text}"' for slot, text in spec.content.exact_text.items())
    extra_colors = (
        f"- Additional colors found in design: {', '.join(colors.exact_hex_codes)}\n"
        if colors.exact_hex_codes
        else ""
    )

    logo = spec.assets.logo
    hero_image = spec.assets.hero_image
    logo_line = (
        f'- Logo: <img src="{logo.url}" alt="Logo">'
        if logo and logo.url
        else "- Logo: Use text-based logo with business name"
    )
    hero_line = (
        f'- Hero Image: <img src="{hero_image.url}">'
        if hero_image and hero_image.url
        else "- Hero Image: Use a professional placeholder from unsplash.com matching the business type"
    )
    extra_images = "".join(
        f"\n- {image.type} ({image.placement or 'any placement'}): {image.url}"
        for image in spec.assets.images
        if image.url
    )

    return f"""Create a complete, single-file HTML website for: {business_prompt}

=== CRITICAL: STRICT DESIGN SPECIFICATIONS - DO NOT DEVIATE ===

## 1. COLORS (USE EXACT HEX CODES - NO SUBSTITUTIONS)
- Primary Color: {colors.primary}
- Secondary Color: {colors.secondary}
- Accent/CTA Color: {colors.accent}
- Background Color: {colors.background}
- Text Color: {colors.text}
{extra_colors}
IMPORTANT: Use these EXACT hex values. Do not use Tailwind color classes like "blue-500" - use custom colors with these exact hex codes.

## 2. TYPOGRAPHY (USE EXACT FONTS)
- Heading Font: "{typography.heading_font}" (import from Google Fonts)
- Body Font: "{typography.body_font}" (import from Google Fonts)
- Base Font Size: {typography.base_font_size}
- H1 Size: {typography.heading_sizes.h1}
- H2 Size: {typography.heading_sizes.h2}
- H3 Size: {typography.heading_sizes.h3}

## 3. LAYOUT (MATCH EXACTLY)
- Container Max Width: {layout.max_width}
- Section Vertical Padding: {layout.section_padding}
- Grid Columns: {layout.grid_columns}
- Grid Gap/Gutter: {layout.gutter_width}

## 4. COMPONENT STYLES
Header:
- Position: {components.header.style}
- Logo Placement: {components.header.logo_placement}

Hero Section:
- Height: {components.hero.height}
- Content Alignment: {components.hero.alignment}

Buttons:
- Border Radius: {components.buttons.border_radius}
- Style: {components.buttons.style}
- Use accent color ({colors.accent}) for primary buttons

Cards:
- Border Radius: {components.cards.border_radius}
- Shadow: {components.cards.shadow}

## 5. SECTIONS (IN THIS EXACT ORDER)
{sections_order}

## 6. EXACT CONTENT (DO NOT PARAPHRASE OR REWRITE)
{exact_text or "- Use appropriate placeholder text that matches the business context"}

## 7. ASSETS
{logo_line}
{hero_line}{extra_images}

## REQUIREMENTS
1. Use Tailwind CSS via CDN
2. Import the exact Google Fonts specified above
3. Use inline style for custom colors: style="color: {colors.primary}; background-color: {colors.background};"
4. Be fully responsive and mobile-friendly
5. Return ONLY the raw HTML string, starting with <!DOCTYPE html>
6. Do not wrap in markdown code blocks

## STRICT RULES - VIOLATIONS ARE NOT ACCEPTABLE
- DO NOT substitute any colors with similar shades
- DO NOT change font families
- DO NOT rearrange section order
- DO NOT rewrite or paraphrase exact text content
- DO NOT modify spacing ratios
- DO NOT use default Tailwind colors - use the exact hex codes provided"""


def build_basic_website_prompt(business_prompt: str) -> str:
    return f"""Create a complete, single-file HTML website code for: {business_prompt}.

Requirements:
1. Use Tailwind CSS via CDN (script tag).
2. Use Google Fonts (Quicksand or similar).
3. Include a Header (Logo, Nav), Hero Section (with placeholder image from unsplash if needed), Services/Features, Testimonials, and Contact Form.
4. Be fully responsive and mobile-friendly.
5. Return ONLY the raw HTML string, starting with <!DOCTYPE html>. Do not wrap in markdown code blocks."""


def generate_website(
    business_prompt: str,
    spec: DesignSpecification | None = None,
    ledger: UsageLedger | None = None,
) -> tuple[str, UsageLedger | None]:
    """Generate a website, pinned to ``spec`` when one is given.

    Returns:
        Tuple of (html, debited ledger).
    """
    if spec is not None:
        prompt = build_strict_website_prompt(business_prompt, spec)
    else:
        prompt = build_basic_website_prompt(business_prompt)

    html, ledger = _generate_html(prompt, ledger, "site_build", max_tokens=16000)
    logger.info("Website generated", strict=spec is not None, chars=len(html))
    return html, ledger


def refine_website_code(
    current_code: str,
    instructions: str,
    ledger: UsageLedger | None = None,
) -> tuple[str, UsageLedger | None]:
    """Apply free-form instructions to an existing site."""
    prompt = f"""I have this HTML code:

{current_code[:REFINE_CHARS]}

User Request: "{instructions}"

Return the UPDATED full single-file HTML code. Maintain all previous functionality unless asked to change.
Ensure Tailwind CSS and scripts remain intact. Return ONLY raw HTML."""
    return _generate_html(prompt, ledger, "site_edit", max_tokens=16000)


def edit_website_with_ai(
    current_code: str,
    user_prompt: str,
    selected_element: dict[str, str] | None = None,
    ledger: UsageLedger | None = None,
) -> tuple[str, UsageLedger | None]:
    """Edit a site from a chat request, optionally focused on one element.

    Args:
        current_code: The site's current HTML.
        user_prompt: What the operator asked for.
        selected_element: Element picked in the preview, with ``tagName``,
            ``className``, ``textContent`` and ``outerHTML`` keys.
        ledger: Ledger debited for ``site_edit``.
    """
    element_context = ""
    if selected_element:
        outer_html = (selected_element.get("outerHTML") or "")[:ELEMENT_CHARS]
        element_context = (
            "\n\nThe user has selected this specific element to modify:\n"
            f"Tag: {selected_element.get('tagName', '')}\n"
            f"Classes: {selected_element.get('className', '')}\n"
            f"Content: {selected_element.get('textContent') or 'N/A'}\n"
            f"HTML: {outer_html}..."
        )

    prompt = f"""You are an expert web developer. The user wants to modify their website.

Current HTML code:
```html
{current_code[:EDIT_CHARS]}
```
{element_context}

User's request: "{user_prompt}"

Instructions:
1. Make ONLY the changes requested by the user
2. Preserve all existing functionality, styles, and structure
3. Keep Tailwind CSS classes and CDN imports intact
4. If the user asks about a specific element, focus changes on that element
5. Return the COMPLETE updated HTML code, not just the changed parts
6. Do not add markdown code blocks - return raw HTML starting with <!DOCTYPE html>

Return the updated HTML code:"""
    return _generate_html(prompt, ledger, "site_edit", max_tokens=16000, model=ai_service.FAST_MODEL)


def summarize_website_changes(old_code: str, new_code: str, user_prompt: str) -> str:
    """One or two sentences describing an edit, for the editor's chat log."""
    prompt = f"""Compare these two HTML versions and summarize what changed in 1-2 sentences.

User's request was: "{user_prompt}"

Old code length: {len(old_code)} chars
New code length: {len(new_code)} chars

Provide a brief, user-friendly summary of what was changed (e.g., "Changed the hero section background to blue and updated the headline text")."""
    generation = ai_service.generate(prompt, model=ai_service.FAST_MODEL, max_tokens=200)
    return generation.response.text.strip() or "Changes applied successfully."


def add_page_to_website(
    current_code: str,
    page_type: str,
    page_label: str,
    business_context: str,
    ledger: UsageLedger | None = None,
) -> tuple[str, UsageLedger | None]:
    """Add a hash-routed page to a single-file site."""
    prompt = f"""You are modifying an existing website to add a new page with SPA-style hash routing.

CURRENT WEBSITE HTML:
{current_code}

TASK: Add a new "{page_label}" page (id: {page_type}) to this website.

REQUIREMENTS:
1. Add a new <section id="page-{page_type}" class="page-section" style="display:none"> containing appropriate content for a {page_label} page
2. Add navigation link in the header nav: <a href="#{page_type}" class="nav-link">{page_label}</a>
3. CRITICAL: Match the existing design exactly (colors, fonts, spacing, button styles, section patterns)
4. Include appropriate content for a {page_label} page based on the business context
5. Business context: {business_context}

IF the website doesn't have the hash routing script yet, add this script before </body>:
{HASH_ROUTER_SCRIPT}

IF the existing main content (hero, features, etc.) is NOT already wrapped in a page section, wrap it in:
<section id="page-home" class="page-section">
  <!-- existing main content here -->
</section>

The header and footer should remain OUTSIDE the page sections (always visible).

Return the COMPLETE updated HTML code starting with <!DOCTYPE html>. No markdown code blocks."""
    html, ledger = _generate_html(prompt, ledger, "site_edit", max_tokens=20000, model=ai_service.FAST_MODEL)
    logger.info("Page added to website", page_type=page_type)
    return html, ledger


def fix_website_issues(
    current_code: str,
    discrepancies: list[Discrepancy],
    spec: DesignSpecification,
    ledger: UsageLedger | None = None,
) -> tuple[str, UsageLedger | None]:
    """Rework a site to resolve the discrepancies found by verification."""
    fix_instructions = "\n".join(
        f'{position}. {d.element}: Change from "{d.actual}" to "{d.expected}" ({d.severity} priority)'
        for position, d in enumerate(discrepancies, start=1)
    )
    colors = spec.colors
    prompt = f"""You are a precise HTML/CSS code editor. Fix the following website code to match the design specifications exactly.

CURRENT HTML CODE:
{current_code}

ISSUES TO FIX:
{fix_instructions or "- Re-check the whole page against the specifications"}

DESIGN SPECIFICATIONS TO MATCH:
Colors: Primary: {colors.primary}, Secondary: {colors.secondary}, Accent: {colors.accent}, Background: {colors.background}, Text: {colors.text}
Typography: Headings: {spec.typography.heading_font}, Body: {spec.typography.body_font}
Section order: {", ".join(s.type for s in spec.ordered_sections())}

INSTRUCTIONS:
1. Fix ONLY the specific issues listed above
2. Maintain all existing functionality and structure
3. Ensure colors match the design spec exactly (use the hex values provided)
4. Ensure typography matches the specified fonts
5. Keep all existing content, sections, and layout intact
6. Return the COMPLETE fixed HTML code starting with <!DOCTYPE html>
7. Do NOT add any markdown code blocks or explanations

Return ONLY the corrected HTML code:"""
    html, ledger = _generate_html(prompt, ledger, "site_edit", max_tokens=16000)
    logger.info("Website issues fixed", issues=len(discrepancies))
    return html, ledger
