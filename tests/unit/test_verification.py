"""Tests for verification results and the pass gate."""

import pytest

from concierge.models.verification import Discrepancy, VerificationReport, VerificationResult


def _result(score: int, *severities: str) -> VerificationResult:
    return VerificationResult(
        overall_match_score=score,
        discrepancies=[
            Discrepancy(element=f"element {i}", severity=severity, expected="x", actual="y")
            for i, severity in enumerate(severities)
        ],
    )


class TestPassGate:
    """Tests for VerificationResult.passed."""

    @pytest.mark.parametrize(
        "score,severities,passed",
        [
            (90, ("minor",), False),
            (85, (), True),
            (84, (), False),
            (100, ("critical",), False),
        ],
    )
    def test_threshold_and_discrepancies(self, score, severities, passed):
        """Test both the score and the discrepancy list gate a pass."""
        result = _result(score, *severities)

        assert result.passed is passed
        assert result.needs_review is not passed

    def test_report_status(self):
        """Test a report carries the pass decision as its status."""
        assert VerificationReport.from_result(_result(92)).status == "passed"
        assert VerificationReport.from_result(_result(92, "minor")).status == "needs_review"

    def test_unavailable_is_not_a_pass(self):
        """Test an unavailable report is never treated as passed."""
        report = VerificationReport.unavailable("The verifier returned no readable result")

        assert report.passed is False
        assert report.result is None


class TestCoercion:
    """Tests for lenient parsing of verifier output."""

    def test_scores_are_clamped_and_rounded(self):
        """Test out-of-range and fractional scores are normalized."""
        result = VerificationResult.from_wire({
            "overallMatchScore": 104.2,
            "colorMatchScore": -3,
            "layoutMatchScore": "77.6",
            "typographyMatchScore": "n/a",
        })

        assert result.overall_match_score == 100
        assert result.color_match_score == 0
        assert result.layout_match_score == 78
        assert result.typography_match_score == 0

    @pytest.mark.parametrize("severity,expected", [("CRITICAL", "critical"), ("Minor ", "minor"), ("blocker", "major"), (None, "major")])
    def test_severity(self, severity, expected):
        """Test severities are normalized and unknown ones treated as major."""
        assert Discrepancy.from_wire({"element": "Hero", "severity": severity}).severity == expected

    def test_non_string_fields(self):
        """Test non-string discrepancy fields are stringified."""
        discrepancy = Discrepancy.from_wire({"element": "h1", "expected": 48, "actual": None})

        assert discrepancy.expected == "48"
        assert discrepancy.actual == ""


class TestGrouping:
    """Tests for grouped_by_severity."""

    def test_groups_keep_reported_order(self):
        """Test each group keeps discrepancies in the order reported."""
        result = VerificationResult(
            overall_match_score=70,
            discrepancies=[
                Discrepancy(element="a", severity="minor"),
                Discrepancy(element="b", severity="critical"),
                Discrepancy(element="c", severity="minor"),
                Discrepancy(element="d", severity="major"),
            ],
        )

        groups = result.grouped_by_severity()

        assert list(groups) == ["critical", "major", "minor"]
        assert [d.element for d in groups["critical"]] == ["b"]
        assert [d.element for d in groups["major"]] == ["d"]
        assert [d.element for d in groups["minor"]] == ["a", "c"]

    def test_empty_groups_present(self):
        """Test every severity has a group even when empty."""
        assert _result(95).grouped_by_severity() == {"critical": [], "major": [], "minor": []}
