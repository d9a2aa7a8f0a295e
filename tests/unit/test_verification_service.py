"""Tests for website verification against a design spec."""

import json
from unittest.mock import patch

import pytest

from concierge.services import ai_service, verification_service

MATCHING_HTML = """<!DOCTYPE html>
<html>
<head>
<script src="https://cdn.tailwindcss.com"></script>
<link href="https://fonts.googleapis.com/css2?family=Playfair+Display&family=Inter" rel="stylesheet">
</head>
<body style="background-color: #FFFFFF; color: #1A1A1A;">
<section class="hero" style="background: #2E4A3F"><h1>Fresh Flowers, Every Day</h1></section>
<section id="services" style="color: #8FA89B">Our services</section>
<section id="testimonials">Testimonials</section>
<section id="contact"><a style="background: #E8B04B">Contact us</a></section>
</body>
</html>"""


def _reply(payload) -> ai_service.ModelResponse:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return ai_service.ModelResponse(text=text)


class TestVerifyWebsiteAgainstSpec:
    """Tests for verify_website_against_spec."""

    def test_passing_result(self, sample_design_spec):
        """Test a high score with no discrepancies passes."""
        payload = {
            "overallMatchScore": 93,
            "colorMatchScore": 95,
            "layoutMatchScore": 90,
            "typographyMatchScore": 94,
            "discrepancies": [],
            "recommendations": [],
            "missingAssets": [],
        }

        with patch.object(ai_service, "invoke_model", return_value=_reply(payload)):
            report = verification_service.verify_website_against_spec(MATCHING_HTML, sample_design_spec)

        assert report.status == "passed"
        assert report.result.overall_match_score == 93

    def test_discrepancy_needs_review(self, sample_design_spec):
        """Test a single discrepancy sends the build to review despite the score."""
        payload = {
            "overallMatchScore": 90,
            "discrepancies": [
                {"element": "Footer", "expected": "dark", "actual": "light", "severity": "minor"},
                "not a discrepancy",
            ],
        }

        with patch.object(ai_service, "invoke_model", return_value=_reply(payload)):
            report = verification_service.verify_website_against_spec(MATCHING_HTML, sample_design_spec)

        assert report.status == "needs_review"
        assert [d.element for d in report.result.discrepancies] == ["Footer"]

    @pytest.mark.parametrize("text", ["I was unable to review this page.", "[1, 2, 3]", '{"notes": "looks fine"}'])
    def test_unreadable_output_is_unavailable(self, sample_design_spec, text):
        """Test a response without a score is unavailable, never a pass."""
        with patch.object(ai_service, "invoke_model", return_value=_reply(text)):
            report = verification_service.verify_website_against_spec(MATCHING_HTML, sample_design_spec)

        assert report.status == "unavailable"
        assert report.passed is False
        assert report.reason

    def test_malformed_fields_are_absorbed(self, sample_design_spec):
        """Test a scored payload with malformed lists and flags still yields a report."""
        payload = {
            "overallMatchScore": 90,
            "discrepancies": 5,
            "missingAssets": [{"type": "logo", "description": "Brand logo", "required": None}],
            "recommendations": "Use the accent color",
        }

        with patch.object(ai_service, "invoke_model", return_value=_reply(payload)):
            report = verification_service.verify_website_against_spec(MATCHING_HTML, sample_design_spec)

        assert report.status == "passed"
        assert report.result.discrepancies == []
        assert report.result.missing_assets[0].required is False
        assert report.result.recommendations == []

    def test_infinite_score(self, sample_design_spec):
        """Test an out-of-range float score is treated as zero."""
        text = '{"overallMatchScore": 1e999, "colorMatchScore": -1e999}'

        with patch.object(ai_service, "invoke_model", return_value=_reply(text)):
            report = verification_service.verify_website_against_spec(MATCHING_HTML, sample_design_spec)

        assert report.status == "needs_review"
        assert report.result.overall_match_score == 0
        assert report.result.color_match_score == 0

    def test_invalid_result_is_unavailable(self, sample_design_spec):
        """Test a payload the result model rejects becomes unavailable."""
        with patch.object(ai_service, "invoke_model", return_value=_reply({"overallMatchScore": 90})):
            with patch.object(
                verification_service.VerificationResult, "from_wire", side_effect=TypeError("bad payload")
            ):
                report = verification_service.verify_website_against_spec(MATCHING_HTML, sample_design_spec)

        assert report.status == "unavailable"
        assert report.passed is False

    def test_concept_image_is_sent(self, sample_design_spec):
        """Test the concept image accompanies the prompt and the device frame note is included."""
        image = "data:image/png;base64,iVBORw0KGgo="

        with patch.object(ai_service, "invoke_model", return_value=_reply({"overallMatchScore": 88})) as mock_invoke:
            verification_service.verify_website_against_spec(MATCHING_HTML, sample_design_spec, image)

        assert mock_invoke.call_args.kwargs["images"] == [image]
        assert "IGNORE DEVICE FRAMES" in mock_invoke.call_args.args[0]

    def test_prompt_truncates_html(self, sample_design_spec):
        """Test only the first part of very long markup is sent."""
        html = "<!DOCTYPE html>" + "x" * 20000

        prompt = verification_service.build_verification_prompt(html, sample_design_spec, with_image=False)

        assert "x" * verification_service.MAX_HTML_CHARS not in prompt
        assert "IGNORE DEVICE FRAMES" not in prompt
        assert "1. hero" in prompt


class TestQuickVerify:
    """Tests for quick_verify."""

    def test_matching_markup(self, sample_design_spec):
        """Test markup with the pinned colors, font and Tailwind passes."""
        assert verification_service.quick_verify(MATCHING_HTML, sample_design_spec) == (True, [])

    def test_missing_items(self, sample_design_spec):
        """Test each missing critical item is reported."""
        passed, issues = verification_service.quick_verify("<html><body>Hi</body></html>", sample_design_spec)

        assert passed is False
        assert len(issues) == 4
        assert "Tailwind CSS CDN not found" in issues


class TestAnalyzeCode:
    """Tests for analyze_code."""

    def test_full_match(self, sample_design_spec):
        """Test markup containing everything scores 100 with no discrepancies."""
        result = verification_service.analyze_code(MATCHING_HTML, sample_design_spec)

        assert result.overall_match_score == 100
        assert result.discrepancies == []
        assert result.passed is True
        assert [a.type for a in result.missing_assets] == ["logo", "hero-image"]

    def test_missing_text_and_colors(self, sample_design_spec):
        """Test missing exact text and colors are flagged as major."""
        html = MATCHING_HTML.replace("Fresh Flowers, Every Day", "Welcome").replace("#E8B04B", "#000000")

        result = verification_service.analyze_code(html, sample_design_spec)

        elements = {d.element: d.severity for d in result.discrepancies}
        assert elements == {"accent color": "major", "heroHeadline": "major"}
        assert result.color_match_score == 80
        assert result.overall_match_score == 70
        assert result.passed is False

    def test_missing_section_is_minor(self, sample_design_spec):
        """Test a missing section is a minor discrepancy."""
        sample_design_spec.add_section("pricing")

        result = verification_service.analyze_code(MATCHING_HTML, sample_design_spec)

        assert [(d.element, d.severity) for d in result.discrepancies] == [("pricing section", "minor")]
        assert result.layout_match_score == 80
