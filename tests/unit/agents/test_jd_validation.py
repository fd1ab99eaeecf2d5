"""
Tests for parsed job description validation.
"""

import pytest

from agents.jd_parser.validation import Competency, ParsedJD, validate_parsed_jd


def make_jd(**overrides) -> ParsedJD:
    fields = dict(
        function="Engineering",
        role_family="Backend",
        seniority="Senior",
        decision_context="Architecture trade-offs",
        core_competencies=[Competency(name="System design", weight=0.6), Competency(name="Mentoring", weight=0.4)],
        confidence_score=0.8,
    )
    fields.update(overrides)
    return ParsedJD(**fields)


def test_valid_schema():
    result = validate_parsed_jd(make_jd())
    assert result.valid
    assert result.errors == []
    assert result.warnings == []


def test_invalid_function_lists_choices():
    result = validate_parsed_jd(make_jd(function="Wizardry"))

    assert not result.valid
    assert result.errors[0].startswith('Invalid function "Wizardry". Must be one of: Marketing, Finance')


def test_invalid_seniority():
    result = validate_parsed_jd(make_jd(seniority="Principal"))
    assert any(error.startswith('Invalid seniority "Principal"') for error in result.errors)


def test_no_competencies():
    result = validate_parsed_jd(make_jd(core_competencies=[]))
    assert "No competencies extracted" in result.errors


def test_too_many_competencies():
    competencies = [Competency(name=f"Skill {i}", weight=1 / 6) for i in range(6)]
    result = validate_parsed_jd(make_jd(core_competencies=competencies))
    assert "Too many competencies (6). Maximum is 5" in result.errors


@pytest.mark.parametrize("weights,valid", [
    ((0.5, 0.5), True),
    ((0.52, 0.52), True),
    ((0.6, 0.6), False),
    ((0.3, 0.3), False),
])
def test_weight_tolerance(weights, valid):
    competencies = [Competency(name=f"Skill {i}", weight=w) for i, w in enumerate(weights)]
    result = validate_parsed_jd(make_jd(core_competencies=competencies))

    assert result.valid is valid
    if not valid:
        assert result.errors[-1].startswith("Competency weights sum to")


def test_warnings_do_not_invalidate():
    result = validate_parsed_jd(make_jd(
        role_family="",
        decision_context="",
        confidence_score=1.5,
        core_competencies=[Competency(name="Excel modelling", weight=1.0)],
    ))

    assert result.valid
    assert '"Excel modelling" looks like a tool, not a competency' in result.warnings
    assert "Confidence score 1.5 is outside [0, 1]" in result.warnings
    assert "Missing role_family" in result.warnings
    assert "Missing decision_context" in result.warnings
