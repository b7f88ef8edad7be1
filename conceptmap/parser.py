"""
Edge-line parser - turns the model's `SOURCE::TARGET` lines into label pairs.

The language model is a noisy source: stray prose, comments and half-formed
lines are normal. Anything that is not a clean single edge is dropped without
complaint.
"""

import re
from typing import Iterable, Optional, Union

from conceptmap.log import get_logger

logger = get_logger("conceptmap.parser")

DELIMITER = "::"
COMMENT_MARKERS = ("//", "#")

_WHITESPACE = re.compile(r"\s+")


def normalize_label(text: str) -> str:
    """Fold a concept label into its node identifier.

    "machine learning" and "Machine  Learning" both become MACHINE_LEARNING.
    """
    return _WHITESPACE.sub("_", text.strip()).upper()


def parse_line(line: str) -> Optional[tuple[str, str]]:
    """Parse one line into a (source, target) pair, or None if it is noise."""
    stripped = line.strip()
    if not stripped or stripped.startswith(COMMENT_MARKERS):
        return None
    if stripped.count(DELIMITER) != 1:
        return None

    raw_source, raw_target = stripped.split(DELIMITER)
    source = normalize_label(raw_source)
    target = normalize_label(raw_target)

    if not source or not target:
        return None
    # "A:::B" is a typo, not the label ":B"; edge ids rely on this
    if any(label.startswith(":") or label.endswith(":") for label in (source, target)):
        return None
    if source == target:
        return None
    return source, target


def parse_lines(lines: Union[str, Iterable[str]]) -> list[tuple[str, str]]:
    """Parse a batch of edge lines.

    Args:
        lines: Iterable of lines, or one block of text with newlines

    Returns:
        (source, target) pairs in input order. Duplicates are kept here;
        the adjacency model collapses them.
    """
    if isinstance(lines, str):
        lines = lines.splitlines()

    pairs = []
    dropped = 0
    for line in lines:
        pair = parse_line(line) if isinstance(line, str) else None
        if pair is None:
            dropped += 1
            continue
        pairs.append(pair)

    if dropped:
        logger.debug(f"Dropped {dropped} non-edge line(s), kept {len(pairs)}")
    return pairs


def format_line(source: str, target: str) -> str:
    """Inverse of parse_line for already-normalized labels."""
    return f"{source}{DELIMITER}{target}"
