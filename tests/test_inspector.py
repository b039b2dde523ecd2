from __future__ import annotations

import logging

import pytest

from list_format_guard import (
    EMOJI_CATALOG,
    HEDGED_VARIANT,
    STRICT_VARIANT,
    LiteralAllow,
    ListItemInspector,
    Options,
    OptionsError,
    PatternAllow,
    get_variant,
    parse_allow_entry,
)


def _inspect(text, variant=HEDGED_VARIANT, **options):
    return ListItemInspector(Options(**options), variant).inspect(text)


def test_bold_label_with_colon_covers_marker_through_colon():
    findings = _inspect("- **Summary**: this is a test")
    assert len(findings) == 1
    assert findings[0].rule == "bold_list_item"
    assert findings[0].range == (0, 14)


def test_bold_label_allows_indentation_and_space_before_colon():
    text = "   * **Setup** : install it"
    findings = _inspect(text)
    assert [f.rule for f in findings] == ["bold_list_item"]
    assert findings[0].range == (0, text.index(":") + 1)


@pytest.mark.parametrize(
    "text",
    [
        "- **Label** text: more",
        "1. **Label**: ordered items are not matched",
        "- plain **Label**: not at the start",
        "**Label**: no list marker",
        "- ****: empty label",
    ],
)
def test_bold_pattern_non_matches(text):
    assert _inspect(text) == []


def test_first_emoji_in_catalog_order_is_reported_once():
    findings = _inspect("- Check it out \U0001f680 and also \U0001f389")
    assert len(findings) == 1
    assert findings[0].rule == "emoji_list_item"
    assert findings[0].range == (15, 16)
    assert "\U0001f680" in findings[0].message
    assert "\U0001f389" not in findings[0].message


def test_catalog_order_wins_over_text_order():
    text = "- \U0001f389 party first, then done ✅"
    findings = _inspect(text)
    assert len(findings) == 1
    assert findings[0].start == text.index("✅")


def test_repeated_emoji_reports_first_occurrence_only():
    text = "- \U0001f525 hot \U0001f525 hotter"
    findings = _inspect(text)
    assert [f.range for f in findings] == [(2, 3)]


def test_warning_sign_needs_presentation_selector():
    assert _inspect("- \u26a0 plain warning sign") == []
    findings = _inspect("- \u26a0\ufe0f emoji warning")
    assert findings[0].range == (2, 4)


def test_catalog_is_fixed():
    assert len(EMOJI_CATALOG) == 20
    assert EMOJI_CATALOG[:9] == (
        "✅", "❌", "⭐", "\U0001f4a1", "\U0001f525",
        "\U0001f4dd", "⚡", "\U0001f3af", "\U0001f680",
    )


def test_bold_and_emoji_both_fire():
    findings = _inspect("- **Label**: text \U0001f680")
    assert [(f.rule, f.range) for f in findings] == [
        ("bold_list_item", (0, 12)),
        ("emoji_list_item", (18, 19)),
    ]


def test_disable_flags_skip_their_check_only():
    text = "- **Label**: text \U0001f680"
    assert [f.rule for f in _inspect(text, disable_bold_list_items=True)] == [
        "emoji_list_item"
    ]
    assert [f.rule for f in _inspect(text, disable_emoji_list_items=True)] == [
        "bold_list_item"
    ]
    assert (
        _inspect(text, disable_bold_list_items=True, disable_emoji_list_items=True)
        == []
    )


def test_plain_item_and_empty_text():
    assert _inspect("- a normal item") == []
    assert _inspect("") == []
    assert _inspect(None) == []


def test_literal_allow_suppresses_both_checks():
    text = "- **Label**: text \U0001f680"
    assert _inspect(text, allows=("Label",)) == []
    assert _inspect(text, STRICT_VARIANT, allows=("Label",)) == []


def test_pattern_allow_only_in_hedged_variant():
    text = "- **Release Notes**: see below"
    allows = ("/release\\s+notes/i",)
    assert _inspect(text, allows=allows) == []
    assert [f.rule for f in _inspect(text, STRICT_VARIANT, allows=allows)] == [
        "bold_list_item"
    ]


def test_strict_variant_matches_descriptor_text_literally():
    text = "- **Path**: use /tmp/ for scratch"
    assert _inspect(text, STRICT_VARIANT, allows=("/tmp/",)) == []


def test_malformed_pattern_never_matches(caplog):
    with caplog.at_level(logging.WARNING, logger="list_format_guard"):
        inspector = ListItemInspector(Options(allows=("/(/",)), HEDGED_VARIANT)
    assert "malformed allow pattern" in caplog.text
    assert [f.rule for f in inspector.inspect("- **A**: (")] == ["bold_list_item"]


def test_parse_allow_entry_variants():
    assert parse_allow_entry("TODO") == LiteralAllow("TODO")
    entry = parse_allow_entry("/^- \\*\\*Note/m")
    assert isinstance(entry, PatternAllow)
    assert entry.source == "^- \\*\\*Note"
    assert entry.flags == "m"
    assert entry.matches("intro\n- **Note**: x")
    # unknown flag letters keep the entry literal
    assert parse_allow_entry("/abc/x") == LiteralAllow("/abc/x")
    # a trailing newline is not part of the descriptor syntax
    assert parse_allow_entry("/foo/\n") == LiteralAllow("/foo/\n")


def test_messages_differ_between_variants():
    text = "- **A**: b ✅"
    strict = _inspect(text, STRICT_VARIANT)
    hedged = _inspect(text, HEDGED_VARIANT)
    assert strict[0].message == STRICT_VARIANT.bold_message
    assert hedged[0].message == HEDGED_VARIANT.bold_message
    assert "AIっぽい" in strict[0].message
    assert "機械的な印象" in hedged[1].message
    assert "✅" in strict[1].message


def test_check_methods_respect_options():
    inspector = ListItemInspector(Options(disable_bold_list_items=True))
    assert inspector.check_bold("- **A**: b") is None
    assert inspector.check_emoji("- \U0001f4a1 idea").range == (2, 3)


def test_inspection_is_repeatable():
    inspector = ListItemInspector(Options(allows=("skip",)))
    text = "- **A**: b \U0001f4bb"
    assert inspector.inspect(text) == inspector.inspect(text)


def test_empty_allow_entry_is_ignored_in_hedged_variant(caplog):
    text = "- **A**: b \U0001f680"
    with caplog.at_level(logging.WARNING, logger="list_format_guard"):
        findings = _inspect(text, allows=("",))
    assert "empty allow entry" in caplog.text
    assert [f.rule for f in findings] == ["bold_list_item", "emoji_list_item"]


def test_empty_allow_entry_matches_everything_in_strict_variant():
    assert _inspect("- **A**: b \U0001f680", STRICT_VARIANT, allows=("",)) == []


def test_options_from_mapping():
    options = Options.from_mapping(
        {"allows": ["x", "/y/"], "disableBoldListItems": True}
    )
    assert options == Options(
        allows=("x", "/y/"),
        disable_bold_list_items=True,
        disable_emoji_list_items=False,
    )
    assert Options.from_mapping(None) == Options()
    assert Options.from_mapping({"allows": None}) == Options()


@pytest.mark.parametrize(
    "mapping",
    [
        {"allows": "not-a-list"},
        {"allows": [1, 2]},
        {"disableEmojiListItems": "yes"},
        ["allows"],
    ],
)
def test_options_from_mapping_rejects_bad_shapes(mapping):
    with pytest.raises(OptionsError):
        Options.from_mapping(mapping)


def test_get_variant():
    assert get_variant("strict") is STRICT_VARIANT
    with pytest.raises(OptionsError):
        get_variant("gentle")
