"""Tests for the failure formatter."""

from __future__ import annotations

import json

import pytest

from promptest.assertions import AssertionBuilder, json_key_snippet
from promptest.formatter import (
    FailureFormatter,
    extract_json_value,
    parse_json_assertion,
    strip_fences,
)
from promptest.decoder import decode_output
from promptest.models import AssertionFailure, FailingProvider


def _failing(result, pid="test"):
    return [FailingProvider(id=pid, result=result)]


def _component(assertion, score=0.0, passed=False, **extra):
    return {"pass": passed, "assertion": assertion, "score": score, **extra}


# ── Report layout ──


def test_checklist_lines():
    out = FailureFormatter().format_results(["provider-1"], _failing({}, "provider-2"))
    assert "  ✓ provider-1\n" in out
    assert "  ✗ provider-2\n" in out
    assert out.index("provider-1") < out.index("provider-2")
    assert "provider-2 FAILED:" in out


def test_verbose_tip_only_when_not_verbose():
    assert "verbose=True" in FailureFormatter().format_results([], _failing({}))
    assert "verbose=True" not in FailureFormatter(verbose=True).format_results([], _failing({}))


def test_no_response_note():
    out = FailureFormatter().format_results([], _failing({"success": False}))
    assert "No response received from provider" in out


def test_api_error_block():
    out = FailureFormatter().format_results([], _failing({"error": "429 Too Many Requests"}))
    assert "API Error:\n  429 Too Many Requests" in out
    assert "No response received" not in out


def test_response_block_indents_lines():
    out = FailureFormatter().format_results([], _failing({"response": {"output": "line1\nline2"}}))
    assert "Response:\n  line1\n  line2\n" in out


def test_structured_response_pretty_printed():
    out = FailureFormatter().format_results([], _failing({"output": {"status": "ok"}}))
    assert '"status": "ok"' in out


def test_verbose_raw_dump():
    result = {"success": False, "output": "x", "latencyMs": 12}
    out = FailureFormatter(verbose=True).format_results([], _failing(result))
    assert "Raw Provider Result (verbose mode):" in out
    assert '"latencyMs": 12' in out


# ── Per-kind rendering ──


def test_contains_failure():
    out = FailureFormatter().format_assertion_failure(
        AssertionFailure(type="contains", value="expected text"), "some output")
    assert out == '  ✗ includes("expected text") - not found in response\n'


def test_regex_failure():
    out = FailureFormatter().format_assertion_failure(AssertionFailure(type="regex", value=r"\d+"), "x")
    assert out == "  ✗ matches(/\\d+/) - pattern not found\n"


def test_equals_failure():
    out = FailureFormatter().format_assertion_failure(AssertionFailure(type="equals", value="exact"), "w")
    assert 'equals("exact")' in out
    assert "does not match" in out


def test_invalid_json_failure_truncates():
    text = "x" * 150
    out = FailureFormatter().format_assertion_failure(AssertionFailure(type="is-json"), text)
    assert "response is not valid JSON" in out
    assert f'Output: "{"x" * 100}..."' in out


def test_invalid_json_failure_short_output():
    out = FailureFormatter().format_assertion_failure(AssertionFailure(type="is-json"), "not json")
    assert 'Output: "not json"\n' in out


def test_invalid_json_failure_without_output():
    out = FailureFormatter().format_assertion_failure(AssertionFailure(type="is-json"), None)
    assert "Output:" not in out


def test_unknown_kind():
    out = FailureFormatter().format_assertion_failure(AssertionFailure(type="similar"), "x")
    assert out == "  ✗ similar assertion failed\n"


def test_generic_javascript_failure():
    out = FailureFormatter().format_assertion_failure(
        AssertionFailure(type="javascript", value="output.length > 10"), "short")
    assert out == "  ✗ javascript assertion failed\n"


# ── Rubric ──


def test_rubric_below_threshold():
    out = FailureFormatter().format_assertion_failure(
        AssertionFailure(type="llm-rubric", value="Be nice", threshold=0.5, score=0.3), "")
    assert "rubric (score: 0.3/0.5)" in out
    assert "meets threshold" not in out


def test_rubric_meets_threshold_note():
    out = FailureFormatter().format_assertion_failure(
        AssertionFailure(type="llm-rubric", threshold=0.5, score=0.6), "")
    assert "Score meets threshold but one or more criteria failed" in out
    assert "ALL criteria to pass" in out


def test_rubric_rounds_score():
    out = FailureFormatter().format_assertion_failure(
        AssertionFailure(type="llm-rubric", threshold=0.9, score=0.12345), "")
    assert "score: 0.12/0.9" in out


def test_rubric_verbose_details():
    failure = AssertionFailure(
        type="llm-rubric", value="Be professional\n\nBe brief", threshold=0.5, score=0.3,
        reason="Response was too casual\nand long", named_scores={"tone": 0.3},
    )
    quiet = FailureFormatter().format_assertion_failure(failure, "")
    assert "Be professional" not in quiet

    out = FailureFormatter(verbose=True).format_assertion_failure(failure, "")
    assert "Rubric criteria:\n      Be professional\n      Be brief\n" in out
    assert "Judge feedback:\n      Response was too casual\n      and long\n" in out
    assert "tone: 0.3" in out


# ── JSON key reconstruction ──


def test_json_includes_round_trip():
    b = AssertionBuilder()
    b.json_includes(key="score", value=42)
    snippet = b.to_assertions()[-1].value
    out = FailureFormatter().format_assertion_failure(
        AssertionFailure(type="javascript", value=snippet), '{"score": 7}')
    assert 'json_includes(key="score")' in out
    assert "Expected: 42\n" in out
    assert "Actual: 7\n" in out


def test_json_includes_round_trip_force_json():
    b = AssertionBuilder()
    b.force_json()
    b.json_includes(key="status", value="success")
    snippet = b.to_assertions()[-1].value
    out = FailureFormatter().format_assertion_failure(
        AssertionFailure(type="javascript", value=snippet), '```json\n{"status": "failed"}\n```')
    assert 'Expected: "success"' in out
    assert 'Actual: "failed"' in out


def test_json_includes_single_quoted_key():
    js = "JSON.parse(output)['status'] === \"success\""
    out = FailureFormatter().format_assertion_failure(
        AssertionFailure(type="javascript", value=js), '{"status":"failed"}')
    assert 'Expected: "success"' in out
    assert 'Actual: "failed"' in out


def test_json_includes_escaped_single_quote():
    js = "JSON.parse(output)['it\\'s'] === 1"
    assert parse_json_assertion(js)["key"] == "it's"


@pytest.mark.parametrize("key", ["café", 'say "hi"', "a\\b", "tab\there"])
@pytest.mark.parametrize("force_json", [False, True])
def test_json_includes_escaped_keys(key, force_json):
    snippet = json_key_snippet(key, 42, force_json=force_json)
    assert parse_json_assertion(snippet)["key"] == key

    out = FailureFormatter().format_assertion_failure(
        AssertionFailure(type="javascript", value=snippet), json.dumps({key: 7}))
    assert f"json_includes(key={json.dumps(key, ensure_ascii=False)})" in out
    assert "Actual: 7\n" in out


def test_json_includes_structured_output():
    snippet = json_key_snippet("ok", True)
    out = FailureFormatter().format_assertion_failure(
        AssertionFailure(type="javascript", value=snippet), {"ok": False})
    assert "Expected: true" in out
    assert "Actual: false" in out


def test_json_includes_unparsable_output():
    snippet = json_key_snippet("status", "success")
    out = FailureFormatter().format_assertion_failure(
        AssertionFailure(type="javascript", value=snippet), "not json at all")
    assert "Actual: (missing)" in out


def test_json_includes_missing_key():
    snippet = json_key_snippet("status", "success")
    out = FailureFormatter().format_assertion_failure(
        AssertionFailure(type="javascript", value=snippet), '{"other": 1}')
    assert "Actual: (missing)" in out


def test_parse_json_assertion_raw_expected_fallback():
    parsed = parse_json_assertion("JSON.parse(output)[\"k\"] === someVariable")
    assert parsed["key"] == "k"
    assert parsed["expected"] == "someVariable"
    assert not parsed["strips_fences"]


def test_parse_json_assertion_nested_value():
    parsed = parse_json_assertion(json_key_snippet("data", {"a": [1, 2]}, force_json=True))
    assert parsed["expected"] == {"a": [1, 2]}
    assert parsed["strips_fences"]


def test_parse_json_assertion_non_matching():
    assert parse_json_assertion("output.includes('x')") is None


def test_strip_fences():
    assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_fences('  ```\n[1]\n```  ') == "[1]"
    assert strip_fences('{"a": 1}') == '{"a": 1}'


def test_extract_json_value():
    assert extract_json_value('{"a": null}', "a") == (True, None)
    assert extract_json_value("", "a") == (False, None)
    assert extract_json_value('```json\n{"a": 2}\n```', "a", strip=True) == (True, 2)
    assert extract_json_value('```json\n{"a": 2}\n```', "a") == (False, None)


# ── JSON validity suppression ──


def test_is_json_failure_suppresses_others():
    b = AssertionBuilder()
    b.json_includes(key="status", value="success")
    is_json, predicate = b.to_promptfoo_assertions()
    result = {
        "success": False,
        "response": {"output": "not json"},
        "gradingResult": {"componentResults": [
            _component(predicate),
            _component(is_json),
            _component({"type": "contains", "value": "x"}),
        ]},
    }
    out = FailureFormatter().format_results([], _failing(result))
    failure_lines = [line for line in out.splitlines() if line.startswith("  ✗ ") and "FAILED" not in line]
    # First checklist line is the provider itself.
    assert failure_lines[1:] == ["  ✗ response is not valid JSON"]
    assert "json_includes" not in out
    assert "includes(" not in out


def test_all_failures_listed_in_order():
    result = {
        "success": False,
        "response": {"output": "Hi"},
        "gradingResult": {"componentResults": [
            _component({"type": "contains", "value": "Alice"}),
            _component({"type": "contains", "value": "Hi"}, score=1.0, passed=True),
            _component({"type": "regex", "value": "^Hello"}),
        ]},
    }
    out = FailureFormatter().format_results([], _failing(result))
    assert "Failures:\n" in out
    assert out.index('includes("Alice")') < out.index("matches(/^Hello/)")
    assert 'includes("Hi")' not in out


def test_missing_provider_id_renders():
    out = FailureFormatter().format_results([None], _failing({}, pid=None))
    assert "✓ None" in out


def test_format_evaluation_matches_raw_results():
    failing = {
        "provider": {"id": "anthropic:claude"},
        "success": False,
        "response": {"output": "Hi"},
        "gradingResult": {"componentResults": [_component({"type": "contains", "value": "Alice"})]},
    }
    output = {"results": {"results": [{"provider": {"id": "echo"}, "success": True}, failing]}}
    decoded = decode_output(output)

    out = FailureFormatter().format_evaluation(decoded)
    assert out == FailureFormatter().format_results(["echo"], _failing(failing, "anthropic:claude"))
    assert "  ✓ echo\n" in out
    assert 'includes("Alice") - not found in response' in out
