from __future__ import annotations

import pytest

from deep_research.exceptions import MalformedOutputError
from deep_research.models.coverage import CoverageVerdict
from deep_research.models.research_plan import ResearchPlan
from deep_research.services.structured_output import extract_json_object, parse_structured


def test_extract_json_object_strips_code_fences():
    raw = '```json\n{"coverage_score": 55, "sufficient": false}\n```'
    assert extract_json_object(raw) == {"coverage_score": 55, "sufficient": False}


def test_extract_json_object_ignores_surrounding_prose():
    raw = 'Sure! Here is the plan:\n{"reformulation": "x", "axes": []}\nHope this helps.'
    assert extract_json_object(raw)["reformulation"] == "x"


@pytest.mark.parametrize("raw", ["", "no json here", "{not: valid json}", "[1, 2]"])
def test_extract_json_object_rejects_garbage(raw):
    with pytest.raises(MalformedOutputError):
        extract_json_object(raw)


def test_parse_structured_validates_against_model():
    verdict = parse_structured('{"coverage_score": "140", "sufficient": true}', CoverageVerdict)
    assert verdict.coverage_score == 100
    assert verdict.sufficient is True


def test_parse_structured_wraps_validation_errors():
    with pytest.raises(MalformedOutputError) as exc_info:
        parse_structured('{"axes": [{"id": 1, "title": "no question"}]}', ResearchPlan)
    assert "ResearchPlan" in str(exc_info.value)
    assert exc_info.value.raw.startswith("{")
