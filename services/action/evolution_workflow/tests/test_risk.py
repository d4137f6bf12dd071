"""Unit tests for configuration diffing and risk tiering."""

from __future__ import annotations

import pytest

from services.action.evolution_workflow.risk import (
    ChangeType,
    ConfigChange,
    RiskAnalysis,
    RiskTier,
    analyze_risk,
    classify,
    describe_change,
    detect_changes,
    render_diff,
)

_BASE = {
    "models": {"providers": {"anthropic": {"apiKey": "sk-1", "baseUrl": "https://a"}}},
    "gateway": {"port": 18789, "auth": {"mode": "token"}},
    "channels": {"telegram": {"enabled": True, "allow": ["alice"]}},
    "agents": {"defaults": {"model": "sonnet", "workspace": "/w", "timeout": 30}},
}


def _keyed(changes: list[ConfigChange]) -> dict[tuple[tuple[str, ...], ChangeType], tuple]:
    return {
        (change.path, change.change_type): (change.old_value, change.new_value)
        for change in changes
    }


def test_identical_trees_have_no_changes() -> None:
    assert detect_changes(_BASE, _BASE) == []
    assert analyze_risk(_BASE, _BASE).summary == "No changes detected"


def test_added_subtree_is_one_change_at_its_root() -> None:
    """A new channel section is reported once with the whole subtree."""
    old = {"channels": {"telegram": {"enabled": True}}}
    new = {"channels": {"telegram": {"enabled": True}, "discord": {"token": "abc"}}}

    changes = detect_changes(old, new)

    assert len(changes) == 1
    assert changes[0].path == ("channels", "discord")
    assert changes[0].change_type is ChangeType.ADD
    assert changes[0].new_value == {"token": "abc"}

    analysis = analyze_risk(old, new)
    assert analysis.overall_risk is RiskTier.MEDIUM
    assert analysis.requires_confirmation is True
    assert analysis.summary == "1 change(s): 1 medium-risk"


def test_reversed_diff_is_the_exact_inverse() -> None:
    new = {
        "channels": {"telegram": {"enabled": False, "allow": ["alice", "bob"]}},
        "agents": {"defaults": {"model": "opus"}},
        "tools": {"web": {"apiKey": "k"}},
    }
    forward = _keyed(detect_changes(_BASE, new))
    backward = _keyed(detect_changes(new, _BASE))

    inverted = {ChangeType.ADD: ChangeType.DELETE, ChangeType.DELETE: ChangeType.ADD}
    flipped = {
        (path, inverted.get(kind, kind)): (new_value, old_value)
        for (path, kind), (old_value, new_value) in forward.items()
    }
    assert flipped == backward


def test_booleans_and_numbers_are_not_conflated() -> None:
    changes = detect_changes({"flag": True}, {"flag": 1})

    assert [change.change_type for change in changes] == [ChangeType.MODIFY]


def test_mapping_replaced_by_scalar_is_a_modify() -> None:
    changes = detect_changes({"gateway": {"port": 1}}, {"gateway": "off"})

    assert changes[0].change_type is ChangeType.MODIFY
    assert changes[0].path == ("gateway",)


@pytest.mark.parametrize(
    ("path", "change_type", "tier"),
    [
        (("models",), ChangeType.DELETE, RiskTier.HIGH),
        (("models",), ChangeType.ADD, RiskTier.SAFE),
        (("models", "providers", "openai"), ChangeType.ADD, RiskTier.HIGH),
        (("gateway", "authToken"), ChangeType.MODIFY, RiskTier.HIGH),
        (("gateway", "token"), ChangeType.MODIFY, RiskTier.HIGH),
        (("tools", "search", "APIKEY"), ChangeType.MODIFY, RiskTier.HIGH),
        (("proxy", "baseUrl"), ChangeType.MODIFY, RiskTier.HIGH),
        (("gateway", "port"), ChangeType.MODIFY, RiskTier.MEDIUM),
        (("channels", "slack"), ChangeType.DELETE, RiskTier.MEDIUM),
        (("agents", "defaults", "models"), ChangeType.MODIFY, RiskTier.MEDIUM),
        (("agents", "defaults", "workspace"), ChangeType.MODIFY, RiskTier.SAFE),
        (("agents", "defaults", "timeout"), ChangeType.MODIFY, RiskTier.SAFE),
        (("skills", "weather"), ChangeType.ADD, RiskTier.SAFE),
    ],
)
def test_classify_applies_first_matching_rule(
    path: tuple[str, ...], change_type: ChangeType, tier: RiskTier
) -> None:
    assert classify(path, change_type).tier is tier
    assert classify(path, change_type) == classify(path, change_type)


def test_nested_credentials_in_added_section_are_high_risk() -> None:
    """An added top-level section is tiered by the riskiest path inside it."""
    old = {"agents": {}}
    new = {"agents": {}, "tools": {"search": {"apiKey": "secret"}}}

    analysis = analyze_risk(old, new)

    assert analysis.overall_risk is RiskTier.HIGH
    assert analysis.risks[0].path == "tools"
    assert analysis.risks[0].reason == "API key changes can break external service access"


def test_summary_lists_tiers_from_highest() -> None:
    new = {
        **_BASE,
        "gateway": {"port": 1, "auth": {"mode": "none"}},
        "agents": {"defaults": {"model": "sonnet", "workspace": "/x", "timeout": 30}},
    }

    analysis = analyze_risk(_BASE, new)

    assert analysis.summary == "3 change(s): 1 high-risk, 1 medium-risk, 1 safe"
    assert analysis.overall_risk is RiskTier.HIGH


def test_analysis_rejects_inconsistent_overall_risk() -> None:
    with pytest.raises(ValueError):
        RiskAnalysis(overall_risk=RiskTier.HIGH, summary="x", requires_confirmation=True)


def test_describe_change_truncates_long_values() -> None:
    change = ConfigChange(
        path=("agents", "defaults", "prompt"),
        old_value="a" * 80,
        new_value="short",
        change_type=ChangeType.MODIFY,
    )

    sentence = describe_change(change)

    assert sentence.startswith("Changed agents.defaults.prompt: ")
    old_preview, new_preview = sentence.split(": ", 1)[1].split(" -> ")
    assert len(old_preview) == 50
    assert old_preview.endswith("...")
    assert new_preview == '"short"'
    assert describe_change(
        ConfigChange(path=("x",), new_value=1, change_type=ChangeType.ADD)
    ) == "Added x"


def test_render_diff_and_wire_form() -> None:
    changes = detect_changes({"a": {"b": 1}, "c": True}, {"a": {"b": 2}, "d": [1]})

    assert render_diff(changes).splitlines() == [
        "- a.b: 1",
        "+ a.b: 2",
        "+ d: [1]",
        "- c: true",
    ]
    assert changes[0].to_json() == {
        "path": "a.b",
        "oldValue": 1,
        "newValue": 2,
        "changeType": "modify",
    }
