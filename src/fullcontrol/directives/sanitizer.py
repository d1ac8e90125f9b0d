"""Display-text sanitization for responses containing directive tags."""

from __future__ import annotations

import re

from fullcontrol.directives.extractor import scan_tags
from fullcontrol.directives.grammar import GRAMMAR, tag_names

_TAG_ALTERNATION = "|".join(re.escape(name) for name in tag_names())

# Any attribute syntax the extractor refuses: single quotes, unquoted values, bare names.
_LOOSE_OPEN_PATTERN = re.compile(rf"<(?P<tag>{_TAG_ALTERNATION})\b[^<>]*?(?P<selfclose>/?)>")
_LOOSE_CLOSE_PATTERN = re.compile(rf"</(?:{_TAG_ALTERNATION})\b[^<>]*>")
_LOOSE_CLOSE_BY_TAG: dict[str, re.Pattern[str]] = {
    name: re.compile(rf"</{re.escape(name)}\b[^<>]*>") for name in tag_names()
}
# A tag name opener that never reaches a '>'.
_TAG_PREFIX_PATTERN = re.compile(rf"<(?=/?(?:{_TAG_ALTERNATION})\b)")


def _replace_once(text: str) -> str:
    pieces: list[str] = []
    cursor = 0
    for occurrence in scan_tags(text):
        pieces.append(text[cursor : occurrence.start])
        if occurrence.complete:
            pieces.append(f"\n{occurrence.rule.label}\n")
        else:
            pieces.append(" ")
        cursor = occurrence.end
    pieces.append(text[cursor:])
    return "".join(pieces)


def _replace_loose_once(text: str) -> str:
    pieces: list[str] = []
    cursor = 0
    unclosed_from: dict[str, int] = {}
    while True:
        match = _LOOSE_OPEN_PATTERN.search(text, cursor)
        if match is None:
            break
        pieces.append(_LOOSE_CLOSE_PATTERN.sub(" ", text[cursor : match.start()]))
        rule = GRAMMAR[match.group("tag")]
        closing = None
        blocked = match.end() >= unclosed_from.get(rule.tag, len(text) + 1)
        if not match.group("selfclose") and rule.allows_block and not blocked:
            closing = _LOOSE_CLOSE_BY_TAG[rule.tag].search(text, match.end())
            if closing is None:
                unclosed_from[rule.tag] = match.end()

        if match.group("selfclose"):
            pieces.append(f"\n{rule.label}\n")
            cursor = match.end()
        elif closing is not None:
            pieces.append(f"\n{rule.label}\n")
            cursor = closing.end()
        else:
            pieces.append(" ")
            cursor = match.end()
    pieces.append(_LOOSE_CLOSE_PATTERN.sub(" ", text[cursor:]))
    return "".join(pieces)


def sanitize_response(text: str) -> str:
    """Replace every directive span with its fixed label.

    Complete spans (well-formed or not) become ``\\n<label>\\n``; dangling open
    and stray close tags become a space. Tags the extractor would not accept
    (single-quoted, unquoted or bare attributes) are replaced the same way.
    Replacement repeats until the text is stable, so the result never contains
    directive tag syntax and sanitizing it again is a no-op.
    """
    if not text:
        return ""
    current = text
    while True:
        replaced = _replace_loose_once(_replace_once(current))
        if replaced == current:
            break
        current = replaced
    return _TAG_PREFIX_PATTERN.sub(" ", current).strip()
