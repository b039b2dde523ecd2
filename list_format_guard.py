"""List-item linter — flags AI-styled list formatting in Markdown documents.

Two list-item tells are detected:

* a bolded lead-in label followed by a colon (``- **Label**: text``), and
* a flagged emoji anywhere in the item (first hit in catalog order only).

Each list item is inspected independently. An item whose source matches any
configured allow entry is skipped entirely. Two message variants exist: the
``strict`` variant (literal allow entries, firm wording) and the ``hedged``
variant (literal or ``/pattern/flags`` allow entries, softer wording).
"""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from bisect import bisect_right
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Callable, Union

from markdown_it import MarkdownIt
from markdown_it.token import Token

logger = logging.getLogger(__name__)

RULE_ID = "no-ai-list-formatting"


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class OptionsError(ValueError):
    """Raised when caller-supplied options have the wrong shape."""


@dataclass(frozen=True)
class Options:
    """Immutable per-run configuration for the list-item inspector."""

    allows: tuple[str, ...] = ()
    disable_bold_list_items: bool = False
    disable_emoji_list_items: bool = False

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, object] | None) -> "Options":
        """Build options from the caller-facing camelCase option keys."""
        if mapping is None:
            return cls()
        if not isinstance(mapping, Mapping):
            raise OptionsError(
                f"options must be an object, got {type(mapping).__name__}"
            )

        allows = mapping.get("allows")
        if allows is None:
            allows = ()
        if not isinstance(allows, (list, tuple)) or not all(
            isinstance(entry, str) for entry in allows
        ):
            raise OptionsError("'allows' must be a list of strings")

        flags: dict[str, bool] = {}
        for key in ("disableBoldListItems", "disableEmojiListItems"):
            value = mapping.get(key, False)
            if value is None:
                value = False
            if not isinstance(value, bool):
                raise OptionsError(f"'{key}' must be a boolean")
            flags[key] = value

        return cls(
            allows=tuple(allows),
            disable_bold_list_items=flags["disableBoldListItems"],
            disable_emoji_list_items=flags["disableEmojiListItems"],
        )


DEFAULT_OPTIONS = Options()


# ---------------------------------------------------------------------------
# Compiled patterns
# ---------------------------------------------------------------------------

# --- 1. Bold lead-in label followed by a colon ---

# "- **Label**: description", anchored at the item start
BOLD_LIST_ITEM_RE = re.compile(r"^\s*[-*+]\s+\*\*([^*]+)\*\*\s*:")

# --- 2. Emoji catalog ---

# Order decides which glyph is reported when several appear in one item.
EMOJI_CATALOG: tuple[str, ...] = (
    "\u2705",  # check mark button
    "\u274c",  # cross mark
    "\u2b50",  # star
    "\U0001f4a1",  # light bulb
    "\U0001f525",  # fire
    "\U0001f4dd",  # memo
    "\u26a1",  # high voltage
    "\U0001f3af",  # direct hit
    "\U0001f680",  # rocket
    "\U0001f389",  # party popper
    "\U0001f4cc",  # pushpin
    "\U0001f50d",  # magnifying glass
    "\U0001f4b0",  # money bag
    "\U0001f4ca",  # bar chart
    "\U0001f527",  # wrench
    "\u26a0\ufe0f",  # warning, emoji presentation only
    "\u2757",  # exclamation mark
    "\U0001f4bb",  # laptop
    "\U0001f4f1",  # mobile phone
    "\U0001f31f",  # glowing star
)

# --- 3. Allow-entry descriptors ---

# "/source/flags" with JavaScript-style flag letters
_ALLOW_DESCRIPTOR_RE = re.compile(r"\A/(.+)/([gimsuyd]*)\Z", re.DOTALL)

_ALLOW_FLAG_MAP: dict[str, re.RegexFlag] = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}


# ---------------------------------------------------------------------------
# Allow entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LiteralAllow:
    """Allow entry matched by plain substring containment."""

    text: str

    def matches(self, text: str) -> bool:
        return self.text in text


@dataclass(frozen=True)
class PatternAllow:
    """Allow entry matched by regular-expression search.

    ``pattern`` is ``None`` when the entry is empty or its source failed to
    compile; such an entry never matches.
    """

    source: str
    flags: str
    pattern: re.Pattern[str] | None = field(compare=False, repr=False)

    def matches(self, text: str) -> bool:
        if self.pattern is None:
            return False
        return self.pattern.search(text) is not None


AllowEntry = Union[LiteralAllow, PatternAllow]


def parse_literal_allow(raw: str) -> AllowEntry:
    """Treat every allow entry as a literal substring."""
    return LiteralAllow(raw)


def parse_allow_entry(raw: str) -> AllowEntry:
    """Parse ``/source/flags`` descriptors into patterns, anything else as a literal."""
    if not raw:
        logger.warning("Ignoring empty allow entry")
        return PatternAllow(source="", flags="", pattern=None)

    descriptor = _ALLOW_DESCRIPTOR_RE.match(raw)
    if descriptor is None:
        return LiteralAllow(raw)

    source, flag_letters = descriptor.group(1), descriptor.group(2)
    re_flags = 0
    for letter in flag_letters:
        re_flags |= _ALLOW_FLAG_MAP.get(letter, 0)

    try:
        pattern: re.Pattern[str] | None = re.compile(source, re_flags)
    except re.error as exc:
        logger.warning("Ignoring malformed allow pattern %r: %s", raw, exc)
        pattern = None
    return PatternAllow(source=source, flags=flag_letters, pattern=pattern)


def _any_allow_matches(text: str, allows: Sequence[AllowEntry]) -> bool:
    """Return True when any allow entry matches the item text."""
    return any(entry.matches(text) for entry in allows)


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InspectorVariant:
    """Allow-entry parsing strategy plus the message table it reports with."""

    name: str
    parse_allow: Callable[[str], AllowEntry]
    bold_message: str
    emoji_message: Callable[[str], str]


STRICT_VARIANT = InspectorVariant(
    name="strict",
    parse_allow=parse_literal_allow,
    bold_message=(
        "リストアイテムで強調（**）とコロン（:）の組み合わせはAIっぽい記述です。"
        "より自然な表現を使用してください。"
    ),
    emoji_message=lambda emoji: (
        f"リストアイテムで絵文字「{emoji}」を使用するのはAIっぽい記述です。"
        "テキストベースの表現を使用してください。"
    ),
)

HEDGED_VARIANT = InspectorVariant(
    name="hedged",
    parse_allow=parse_allow_entry,
    bold_message=(
        "リストアイテムで強調（**）とコロン（:）の組み合わせは機械的な印象を与える可能性があります。"
        "より自然な表現を検討してください。"
    ),
    emoji_message=lambda emoji: (
        f"リストアイテムでの絵文字「{emoji}」の使用は、読み手によっては機械的な印象を与える場合があります。"
        "テキストベースの表現も検討してみてください。"
    ),
)

VARIANTS: dict[str, InspectorVariant] = {
    STRICT_VARIANT.name: STRICT_VARIANT,
    HEDGED_VARIANT.name: HEDGED_VARIANT,
}


def get_variant(name: str) -> InspectorVariant:
    """Look up a variant by name, raising OptionsError for unknown names."""
    try:
        return VARIANTS[name]
    except KeyError:
        known = ", ".join(sorted(VARIANTS))
        raise OptionsError(f"unknown variant {name!r} (expected one of: {known})") from None


# ---------------------------------------------------------------------------
# Findings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Finding:
    """A rule hit with a half-open range relative to the list item text."""

    rule: str
    message: str
    start: int
    end: int

    @property
    def range(self) -> tuple[int, int]:
        return (self.start, self.end)


def _check_bold_list_item(text: str, variant: InspectorVariant) -> Finding | None:
    """Flag a bold label plus colon at the start of the item."""
    m = BOLD_LIST_ITEM_RE.match(text)
    if m is None:
        return None
    return Finding(
        rule="bold_list_item",
        message=variant.bold_message,
        start=m.start(),
        end=m.end(),
    )


def _check_emoji_list_item(text: str, variant: InspectorVariant) -> Finding | None:
    """Flag the first catalog emoji present in the item, in catalog order."""
    for emoji in EMOJI_CATALOG:
        index = text.find(emoji)
        if index != -1:
            return Finding(
                rule="emoji_list_item",
                message=variant.emoji_message(emoji),
                start=index,
                end=index + len(emoji),
            )
    return None


# ---------------------------------------------------------------------------
# Document model
# ---------------------------------------------------------------------------


class NodeKind(Enum):
    """Block-level node kinds produced by the Markdown host."""

    DOCUMENT = "Document"
    HEADER = "Header"
    PARAGRAPH = "Paragraph"
    LIST = "List"
    LIST_ITEM = "ListItem"
    BLOCK_QUOTE = "BlockQuote"
    CODE_BLOCK = "CodeBlock"
    HORIZONTAL_RULE = "HorizontalRule"
    HTML = "Html"
    TABLE = "Table"


_TOKEN_KINDS: dict[str, NodeKind] = {
    "heading_open": NodeKind.HEADER,
    "paragraph_open": NodeKind.PARAGRAPH,
    "bullet_list_open": NodeKind.LIST,
    "ordered_list_open": NodeKind.LIST,
    "list_item_open": NodeKind.LIST_ITEM,
    "blockquote_open": NodeKind.BLOCK_QUOTE,
    "fence": NodeKind.CODE_BLOCK,
    "code_block": NodeKind.CODE_BLOCK,
    "hr": NodeKind.HORIZONTAL_RULE,
    "html_block": NodeKind.HTML,
    "table_open": NodeKind.TABLE,
}

# Blockquote markers and indentation ahead of a list marker
_CONTAINER_PREFIX_RE = re.compile(r"[ \t>]*")
_LIST_MARKER_RE = re.compile(r"\d{1,9}[.)]|[-*+]")


@dataclass(frozen=True)
class Node:
    """A block node with its raw source span in the normalised document."""

    kind: NodeKind
    raw: str
    start: int
    end: int


@dataclass(frozen=True)
class Location:
    """Absolute position of a report; lines and columns are 1-based."""

    line: int
    column: int
    end_line: int
    end_column: int
    start: int
    end: int

    def to_payload(self) -> dict[str, object]:
        return {
            "line": self.line,
            "column": self.column,
            "endLine": self.end_line,
            "endColumn": self.end_column,
            "range": [self.start, self.end],
        }


@dataclass(frozen=True)
class Report:
    """A finding translated to absolute document coordinates."""

    rule: str
    message: str
    location: Location

    def to_payload(self) -> dict[str, object]:
        """Serialize a report for tool output."""
        return {
            "type": "Report",
            "ruleId": RULE_ID,
            "rule": self.rule,
            "message": self.message,
            **self.location.to_payload(),
        }


@lru_cache(maxsize=1)
def _markdown_parser() -> MarkdownIt:
    md = MarkdownIt("commonmark")
    md.enable("table")
    return md


def _normalize_newlines(source: str) -> str:
    return source.replace("\r\n", "\n").replace("\r", "\n")


def _line_starts(source: str) -> list[int]:
    """Offsets at which each line of ``source`` begins."""
    starts = [0]
    for index, char in enumerate(source):
        if char == "\n":
            starts.append(index + 1)
    return starts


def _line_offset(line_starts: list[int], line: int, source_length: int) -> int:
    if line < len(line_starts):
        return line_starts[line]
    return source_length


def _span_end(source: str, start: int, limit: int) -> int:
    """End of the span at ``limit`` with trailing whitespace removed."""
    return start + len(source[start:limit].rstrip())


def parse_document(source: str) -> list[Node]:
    """Parse Markdown into block nodes in document order.

    The first node is always the DOCUMENT node. List items start at their
    marker, so a nested item's raw text is contained in its parent's.
    """
    source = _normalize_newlines(source)
    line_starts = _line_starts(source)
    nodes = [
        Node(
            kind=NodeKind.DOCUMENT,
            raw=source,
            start=0,
            end=len(source),
        )
    ]

    # (first line, marker end column) of open list items
    open_items: list[tuple[int, int]] = []
    tokens: list[Token] = _markdown_parser().parse(source)
    for token in tokens:
        if token.type == "list_item_close":
            open_items.pop()
            continue

        kind = _TOKEN_KINDS.get(token.type)
        if kind is None or token.map is None:
            continue

        first_line, end_line = token.map
        line_start = _line_offset(line_starts, first_line, len(source))
        line_end = _line_offset(line_starts, end_line, len(source))
        line_text = source[line_start:line_end].split("\n", 1)[0]

        column = 0
        if kind is NodeKind.LIST_ITEM:
            search_from = 0
            if open_items and open_items[-1][0] == first_line:
                search_from = open_items[-1][1]
            column = _CONTAINER_PREFIX_RE.match(line_text, search_from).end()
            marker = _LIST_MARKER_RE.match(line_text, column)
            marker_end = marker.end() if marker is not None else column
            open_items.append((first_line, marker_end))

        start = line_start + column
        end = _span_end(source, start, line_end)
        nodes.append(Node(kind=kind, raw=source[start:end], start=start, end=end))

    return nodes


# ---------------------------------------------------------------------------
# Host context and traversal
# ---------------------------------------------------------------------------

Visitor = Callable[[Node], None]


class LintContext:
    """Per-document host services: source access, location, reporting."""

    def __init__(self, source: str):
        self.source = _normalize_newlines(source)
        self._line_starts = _line_starts(self.source)
        self.reports: list[Report] = []

    def get_source(self, node: Node | None) -> str:
        if node is None:
            return ""
        return node.raw or ""

    def _position(self, offset: int) -> tuple[int, int]:
        line_index = bisect_right(self._line_starts, offset) - 1
        return line_index + 1, offset - self._line_starts[line_index] + 1

    def locate(self, node: Node, span: tuple[int, int]) -> Location:
        """Translate a node-relative ``[start, end)`` range to a Location."""
        start = node.start + span[0]
        end = node.start + span[1]
        line, column = self._position(start)
        end_line, end_column = self._position(end)
        return Location(
            line=line,
            column=column,
            end_line=end_line,
            end_column=end_column,
            start=start,
            end=end,
        )

    def report(
        self, node: Node, message: str, location: Location, rule: str = RULE_ID
    ) -> None:
        self.reports.append(Report(rule=rule, message=message, location=location))


def traverse(nodes: Iterable[Node], visitors: Mapping[NodeKind, Visitor]) -> None:
    """Hand each node to the visitor registered for its kind, in order."""
    for node in nodes:
        visitor = visitors.get(node.kind)
        if visitor is not None:
            visitor(node)


# ---------------------------------------------------------------------------
# Inspector
# ---------------------------------------------------------------------------


class ListItemInspector:
    """Stateless per-item classifier for bold-colon and emoji list items."""

    def __init__(
        self,
        options: Options = DEFAULT_OPTIONS,
        variant: InspectorVariant = HEDGED_VARIANT,
    ):
        self.options = options
        self.variant = variant
        self.allows: tuple[AllowEntry, ...] = tuple(
            variant.parse_allow(raw) for raw in options.allows
        )

    def is_allowed(self, text: str) -> bool:
        return bool(self.allows) and _any_allow_matches(text, self.allows)

    def check_bold(self, text: str) -> Finding | None:
        if self.options.disable_bold_list_items:
            return None
        return _check_bold_list_item(text, self.variant)

    def check_emoji(self, text: str) -> Finding | None:
        if self.options.disable_emoji_list_items:
            return None
        return _check_emoji_list_item(text, self.variant)

    def inspect(self, text: str | None) -> list[Finding]:
        """Return up to two findings for one list item's source text."""
        if not text or self.is_allowed(text):
            return []
        findings = (self.check_bold(text), self.check_emoji(text))
        return [finding for finding in findings if finding is not None]

    def visitors(self, context: LintContext) -> dict[NodeKind, Visitor]:
        """Visitor table for the host; only list items are inspected."""

        def _on_list_item(node: Node) -> None:
            for finding in self.inspect(context.get_source(node)):
                context.report(
                    node,
                    finding.message,
                    context.locate(node, finding.range),
                    rule=finding.rule,
                )

        return {NodeKind.LIST_ITEM: _on_list_item}


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

OptionsLike = Union[Options, Mapping[str, object], None]


def _coerce_options(options: OptionsLike) -> Options:
    if isinstance(options, Options):
        return options
    return Options.from_mapping(options)


def lint_text(
    text: str,
    options: OptionsLike = None,
    variant: InspectorVariant = HEDGED_VARIANT,
) -> list[Report]:
    """Lint a Markdown string and return reports in document order."""
    inspector = ListItemInspector(_coerce_options(options), variant)
    context = LintContext(text)
    traverse(parse_document(context.source), inspector.visitors(context))
    return list(context.reports)


def lint_file(
    path: str | Path,
    options: OptionsLike = None,
    variant: InspectorVariant = HEDGED_VARIANT,
) -> list[Report]:
    """Lint a UTF-8 Markdown file."""
    text = Path(path).read_text(encoding="utf-8")
    return lint_text(text, options, variant)


# Keys a textlint config may use for this rule
_RULE_KEYS = ("@textlint-ja/no-ai-writing", "no-ai-writing", RULE_ID)


def load_options(path: str | Path) -> Options | None:
    """Load options from a JSON file; ``None`` means the rule is switched off.

    The file holds either the options object itself or a textlint-style
    ``{"rules": {"no-ai-writing": ...}}`` document (scoped, short or
    ``no-ai-list-formatting`` key).
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except UnicodeDecodeError as exc:
        raise OptionsError(f"{path}: not UTF-8: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise OptionsError(f"{path}: invalid JSON: {exc}") from exc

    if isinstance(data, Mapping) and "rules" in data:
        rules = data["rules"]
        if not isinstance(rules, Mapping):
            raise OptionsError(f"{path}: 'rules' must be an object")
        data = next(
            (rules[key] for key in _RULE_KEYS if key in rules),
            True,
        )
        if data is False:
            return None
        if data is True:
            return Options()

    return Options.from_mapping(data)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

_MARKDOWN_SUFFIXES = frozenset({".md", ".markdown"})


def _iter_markdown_files(paths: Iterable[Path]) -> list[Path]:
    """Expand directories into their Markdown files, keeping argument order."""
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(
                sorted(
                    p
                    for p in path.rglob("*")
                    if p.is_file() and p.suffix.lower() in _MARKDOWN_SUFFIXES
                )
            )
        else:
            files.append(path)
    return files


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="list-format-guard",
        description="Flag AI-styled list items (bold-colon labels, emoji) in Markdown.",
    )
    p.add_argument("paths", nargs="+", type=Path, help="Markdown files or directories")
    p.add_argument("--config", type=Path, help="JSON options file")
    p.add_argument(
        "--variant",
        choices=sorted(VARIANTS),
        default=HEDGED_VARIANT.name,
        help="message wording and allow-entry syntax (default: hedged)",
    )
    p.add_argument(
        "--allow",
        action="append",
        default=[],
        metavar="TEXT",
        help="skip list items containing TEXT (or matching /pattern/flags); repeatable",
    )
    p.add_argument("--disable-bold-list-items", action="store_true")
    p.add_argument("--disable-emoji-list-items", action="store_true")
    p.add_argument("--format", choices=("text", "json"), default="text")
    p.add_argument("--verbose", "-v", action="store_true")
    return p.parse_args(argv)


def _resolve_options(args: argparse.Namespace) -> Options | None:
    options = load_options(args.config) if args.config else Options()
    if options is None:
        return None
    return replace(
        options,
        allows=options.allows + tuple(args.allow),
        disable_bold_list_items=(
            options.disable_bold_list_items or args.disable_bold_list_items
        ),
        disable_emoji_list_items=(
            options.disable_emoji_list_items or args.disable_emoji_list_items
        ),
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        options = _resolve_options(args)
        variant = get_variant(args.variant)
    except (OptionsError, OSError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    if options is None:
        logger.debug("%s is disabled by configuration", RULE_ID)
        return 0

    results: list[tuple[Path, Report]] = []
    try:
        for path in _iter_markdown_files(args.paths):
            reports = lint_file(path, options, variant)
            logger.debug("%s: %d finding(s)", path, len(reports))
            results.extend((path, report) for report in reports)
    except (OSError, UnicodeDecodeError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    if args.format == "json":
        payload = [
            {"path": str(path), **report.to_payload()} for path, report in results
        ]
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        for path, report in results:
            loc = report.location
            print(f"{path}:{loc.line}:{loc.column}: {report.rule}: {report.message}")

    return 1 if results else 0


if __name__ == "__main__":
    raise SystemExit(main())
