"""RL environment for natural list writing using list-format-guard as the reward signal.

Prompts ask for answers that are naturally list-shaped (steps, checklists,
comparisons). The format reward is the share of list items in the answer that
draw no finding from the list-item inspector, so bold-colon lead-ins and
decorative emoji lower the reward item by item.

The environment pairs the format reward with a length gate so that a bare
one-line list cannot saturate the reward.
"""

from __future__ import annotations

import re

import verifiers as vf
from datasets import Dataset

from list_format_guard import (
    HEDGED_VARIANT,
    InspectorVariant,
    ListItemInspector,
    NodeKind,
    Options,
    parse_document,
)

# ---------------------------------------------------------------------------
# Dataset: list-shaped prompts
# ---------------------------------------------------------------------------

# Each prompt invites a Markdown list. A good answer keeps the list but writes
# its items as plain sentences.
_PROMPTS = [
    "List the steps you would take to move a small team's wiki to a new tool.",
    "Give a checklist for preparing a bicycle for a long ride.",
    "List the trade-offs between renting and buying a home in a large city.",
    "Write a packing list for a three-day hiking trip, with a short note per item.",
    "List five questions to ask before adopting a new database at work.",
    "Give a list of common mistakes when learning to bake bread, and how to avoid them.",
    "List the things a new maintainer should check before cutting a release.",
    "Outline, as a bulleted list, how to run a calm and short weekly meeting.",
    "List practical ways to reduce noise in an open-plan office.",
    "Give a bulleted summary of how a bill becomes law in a parliamentary system.",
    "List the differences between a stock and a bond for a first-time investor.",
    "Write a bulleted list of tips for a first visit to a night market.",
    "List what to look at when reviewing a pull request from a new contributor.",
    "Give a list of signs that a houseplant is getting too much water.",
    "List the stages of writing a grant proposal, with one sentence on each.",
    "Write a bulleted list of ways to make a long train journey comfortable.",
    "List what a landlord should document before a tenant moves in.",
    "Give a checklist for backing up a family photo collection.",
    "List the main causes of delays in home renovation projects.",
    "Write a bulleted list of advice for someone giving their first conference talk.",
]


def _build_dataset() -> Dataset:
    """One row per list prompt; there is no reference answer to grade against."""
    return Dataset.from_list(
        [
            {
                "prompt": [{"role": "user", "content": prompt}],
                "answer": "",
                "task": "list-format",
            }
            for prompt in _PROMPTS
        ]
    )


# ---------------------------------------------------------------------------
# Reward functions
# ---------------------------------------------------------------------------

# Words inside list items at which the length gate opens fully.
_TARGET_LIST_WORDS = 150

# Bullet and ordered-list markers, which are not counted as words
_MARKER_WORD_RE = re.compile(r"[-*+>]|\d{1,9}[.)]")


def _list_item_texts(text: str) -> list[str]:
    return [node.raw for node in parse_document(text) if node.kind is NodeKind.LIST_ITEM]


def _top_level_list_items(text: str) -> list[str]:
    """List items not contained in another item, so nested words count once."""
    items: list[str] = []
    covered_until = -1
    for node in parse_document(text):
        if node.kind is NodeKind.LIST_ITEM and node.start >= covered_until:
            items.append(node.raw)
            covered_until = node.end
    return items


def score_list_format(
    text: str, variant: InspectorVariant = HEDGED_VARIANT
) -> float:
    """Fraction of list items with no findings; 0.0 when the text has no list."""
    items = _list_item_texts(text)
    if not items:
        return 0.0
    inspector = ListItemInspector(Options(), variant)
    clean = sum(1 for item in items if not inspector.inspect(item))
    return clean / len(items)


async def list_format_reward(completion, parser) -> float:
    """Score the completion by the share of list items that draw no finding.

    Returns 0.0-1.0. Completions without any list item return 0.0 so the
    reward cannot be collected by dodging the requested list format.
    """
    text = parser.parse_answer(completion) or ""
    return score_list_format(text)


async def length_reward(completion, parser) -> float:
    """Gate on how much is written inside the list itself.

    Only words in top-level list items count, so prose around a one-word
    list does not open the gate. The gate opens linearly and reaches 1.0 at
    _TARGET_LIST_WORDS.
    """
    text = parser.parse_answer(completion) or ""
    list_words = sum(
        1
        for item in _top_level_list_items(text)
        for word in item.split()
        if not _MARKER_WORD_RE.fullmatch(word)
    )
    return min(list_words / _TARGET_LIST_WORDS, 1.0)


# ---------------------------------------------------------------------------
# Environment entrypoint
# ---------------------------------------------------------------------------


def load_environment(
    use_think: bool = False,
    format_weight: float = 0.8,
    length_weight: float = 0.2,
) -> vf.SingleTurnEnv:
    """Load the list-format RL environment.

    Args:
        use_think: If True, use ThinkParser to support chain-of-thought before
            the final answer. The format reward is computed only on the
            answer portion (after </think>).
        format_weight: Weight for the list-format reward component (default 0.8).
        length_weight: Weight for the length reward component (default 0.2).

    Returns:
        A SingleTurnEnv configured with list-format-guard as the primary reward signal.
    """
    dataset = _build_dataset()

    def extract_text(completion):
        try:
            return completion[-1]["content"]
        except (IndexError, KeyError, TypeError):
            return str(completion)

    parser = vf.ThinkParser(extract_text) if use_think else vf.Parser(extract_text)

    rubric = vf.Rubric(
        funcs=[list_format_reward, length_reward],
        weights=[format_weight, length_weight],
    )

    return vf.SingleTurnEnv(
        dataset=dataset,
        parser=parser,
        rubric=rubric,
    )
