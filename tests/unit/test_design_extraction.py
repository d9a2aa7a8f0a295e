"""Tests for design spec extraction and defaulting."""

import json
from unittest.mock import patch

from concierge.models.lead import BrandGuidelines
from concierge.services import ai_service, design_extraction_service
from concierge.services.design_extraction_service import (
    build_design_spec,
    create_default_design_spec,
    extract_design_spec,
)

CONCEPT = "data:image/png;base64,iVBORw0KGgo="
BRAND = BrandGuidelines(colors=["#112233", "#445566", "#778899"], tone="Luxury and elegant")


def _reply(payload) -> ai_service.ModelResponse:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return ai_service.ModelResponse(text=text)


class TestBuildDesignSpec:
    """Tests for build_design_spec."""

    def test_partial_extraction_fills_per_field(self):
        """Test missing and invalid fields fall back independently."""
        extracted = {
            "colors": {"primary": "#0a0", "secondary": "teal", "exactHexCodes": ["#00AA00", "junk", "#00aa00"]},
            "typography": {"headingFont": "montserrat", "bodyFont": "Comic Sans", "headingSizes": {"h1": "64px"}},
            "layout": {"gridColumns": "40", "maxWidth": "wide"},
            "sections": [{"type": "Hero", "order": 1}, {"type": "pricing", "order": "2"}, {"order": 3}],
        }

        spec = build_design_spec(extracted, BRAND)

        assert spec.source == "extracted"
        assert spec.colors.primary == "#00AA00"
        assert spec.colors.secondary == "#445566"
        assert spec.colors.accent == "#778899"
        assert spec.colors.text == "#1A1A1A"
        assert spec.colors.exact_hex_codes == ["#00AA00"]
        assert spec.typography.heading_font == "Montserrat"
        assert spec.typography.body_font == "Inter"
        assert spec.typography.heading_sizes.h1 == "64px"
        assert spec.layout.grid_columns == 12
        assert spec.layout.max_width == "1200px"
        assert [(s.type, s.order) for s in spec.ordered_sections()] == [("hero", 1), ("pricing", 2)]

    def test_no_sections_uses_defaults(self):
        """Test an extraction without sections gets the default page."""
        spec = build_design_spec({}, None)

        assert [s.type for s in spec.ordered_sections()] == ["hero", "about", "services", "testimonials", "contact"]
        assert spec.colors.primary == "#D4AF37"


class TestExtractDesignSpec:
    """Tests for extract_design_spec."""

    def test_extracted(self):
        """Test a readable extraction is used."""
        payload = {"colors": {"primary": "#2E4A3F"}, "sections": [{"type": "hero", "order": 1}]}

        with patch.object(ai_service, "invoke_model", return_value=_reply(payload)) as mock_invoke:
            spec = extract_design_spec(CONCEPT, "Bloom & Co", BRAND)

        assert spec.source == "extracted"
        assert spec.colors.primary == "#2E4A3F"
        assert mock_invoke.call_args.kwargs["images"] == [CONCEPT]
        assert "Bloom & Co" in mock_invoke.call_args.args[0]

    def test_unreadable_response_defaults(self):
        """Test an unreadable response falls back to the brand defaults."""
        with patch.object(ai_service, "invoke_model", return_value=_reply("Sorry, I can't see the image.")):
            spec = extract_design_spec(CONCEPT, "Bloom & Co", BRAND)

        assert spec.source == "default"
        assert spec.colors.primary == "#112233"

    def test_call_failure_defaults(self):
        """Test a failed vision call falls back to the brand defaults."""
        with patch.object(ai_service, "invoke_model", side_effect=RuntimeError("ModelTimeoutException")):
            spec = extract_design_spec(CONCEPT, "Bloom & Co", BRAND)

        assert spec.source == "default"

    def test_infinite_numbers_fall_back_per_field(self):
        """Test out-of-range numbers in the response fall back instead of failing."""
        text = '{"layout": {"gridColumns": 1e999}, "sections": [{"type": "hero", "order": 1e999}, {"type": "contact", "order": 2}]}'

        with patch.object(ai_service, "invoke_model", return_value=_reply(text)):
            spec = extract_design_spec(CONCEPT, "Bloom & Co", BRAND)

        assert spec.source == "extracted"
        assert spec.layout.grid_columns == 12
        assert [s.type for s in spec.ordered_sections()] == ["hero", "contact"]

    def test_build_failure_defaults(self):
        """Test an error while building the spec falls back to the brand defaults."""
        with patch.object(ai_service, "invoke_model", return_value=_reply({"colors": ["#2E4A3F"]})), \
             patch.object(design_extraction_service, "build_design_spec", side_effect=AttributeError("list")):
            spec = extract_design_spec(CONCEPT, "Bloom & Co", BRAND)

        assert spec.source == "default"
        assert spec.colors.primary == "#112233"


class TestCreateDefaultDesignSpec:
    """Tests for create_default_design_spec."""

    def test_luxury_tone(self):
        """Test luxury tones get serif headings and roomier spacing."""
        spec = create_default_design_spec(BRAND)

        assert spec.typography.heading_font == "Playfair Display"
        assert spec.layout.section_padding == "100px"
        assert spec.components.header.logo_placement == "center"
        assert spec.colors.exact_hex_codes == ["#112233", "#445566", "#778899"]

    def test_friendly_tone(self):
        """Test friendly tones get rounded buttons."""
        spec = create_default_design_spec(BrandGuidelines(colors=["#FF8800"], tone="Warm and friendly"))

        assert spec.typography.heading_font == "Poppins"
        assert spec.typography.body_font == "Open Sans"
        assert spec.components.buttons.border_radius == "24px"
        assert spec.colors.primary == "#FF8800"
        assert spec.colors.secondary == "#4A4A4A"

    def test_modern_tone(self):
        """Test modern tones get Inter and tight radii."""
        spec = create_default_design_spec(BrandGuidelines(tone="Modern minimal"))

        assert spec.typography.heading_font == "Inter"
        assert spec.components.buttons.border_radius == "4px"
        assert spec.components.cards.border_radius == "8px"

    def test_no_brand(self):
        """Test a spec can be defaulted with no brand at all."""
        spec = create_default_design_spec(None)

        assert spec.source == "default"
        assert spec.colors.primary == "#D4AF37"
        assert spec.typography.body_font == "Lato"
