"""Single-pass directive extraction from free-form response text."""

from __future__ import annotations

import logging as py_logging
import re
from collections.abc import Iterator
from dataclasses import dataclass

from fullcontrol.directives.grammar import (
    ATTRIBUTES_SOURCE,
    GRAMMAR,
    BodyMode,
    TagRule,
    parse_attributes,
    tag_names,
)
from fullcontrol.directives.models import Directive, Domain, OperationBatch

logger = py_logging.getLogger(__name__)

_TAG_ALTERNATION = "|".join(re.escape(name) for name in tag_names())

OPEN_TAG_PATTERN: re.Pattern[str] = re.compile(
    rf"<(?P<tag>{_TAG_ALTERNATION})(?P<attrs>{ATTRIBUTES_SOURCE})\s*(?P<selfclose>/?)>"
)
CLOSE_TAG_PATTERN: re.Pattern[str] = re.compile(rf"</(?P<tag>{_TAG_ALTERNATION})\s*>")


@dataclass(frozen=True)
class TagOccurrence:
    """One opening tag found in the text and, for blocks, its matched close tag.

    ``complete`` is False for an opening tag that has no usable close tag; its
    span then covers only the opening tag itself.
    """

    rule: TagRule
    start: int
    end: int
    attributes: dict[str, str]
    body: str | None
    self_closed: bool
    complete: bool


_CLOSE_PATTERNS: dict[str, re.Pattern[str]] = {
    name: re.compile(rf"</{re.escape(name)}\s*>") for name in tag_names()
}


def scan_tags(text: str) -> Iterator[TagOccurrence]:
    """Yield tag occurrences left to right.

    Blocks close at the first following close tag of the same name and their
    bodies are not scanned for further tags.
    """
    position = 0
    # earliest offset past which a block tag has no close tag
    unclosed_from: dict[str, int] = {}
    while True:
        match = OPEN_TAG_PATTERN.search(text, position)
        if match is None:
            return
        rule = GRAMMAR[match.group("tag")]
        attributes = parse_attributes(match.group("attrs"))

        if match.group("selfclose"):
            yield TagOccurrence(
                rule=rule,
                start=match.start(),
                end=match.end(),
                attributes=attributes,
                body=None,
                self_closed=True,
                complete=True,
            )
            position = match.end()
            continue

        closing = None
        if rule.allows_block and match.end() < unclosed_from.get(rule.tag, len(text) + 1):
            closing = _CLOSE_PATTERNS[rule.tag].search(text, match.end())
            if closing is None:
                unclosed_from[rule.tag] = match.end()
        if closing is None:
            yield TagOccurrence(
                rule=rule,
                start=match.start(),
                end=match.end(),
                attributes=attributes,
                body=None,
                self_closed=False,
                complete=False,
            )
            position = match.end()
            continue

        yield TagOccurrence(
            rule=rule,
            start=match.start(),
            end=closing.end(),
            attributes=attributes,
            body=text[match.end() : closing.start()],
            self_closed=False,
            complete=True,
        )
        position = closing.end()


def build_directive(occurrence: TagOccurrence) -> Directive | None:
    """Turn a tag occurrence into a typed directive, or None when it is malformed."""
    rule = occurrence.rule
    if not occurrence.complete:
        return _skip(occurrence, "no closing tag" if rule.allows_block else "must be self-closing")
    if occurrence.self_closed and not rule.allows_self_closing:
        return _skip(occurrence, "body is required")

    missing = [name for name in rule.required if not occurrence.attributes.get(name, "").strip()]
    if missing:
        return _skip(occurrence, f"missing attributes: {', '.join(missing)}")
    if rule.body is BodyMode.REQUIRED and not (occurrence.body or "").strip():
        return _skip(occurrence, "empty body")

    directive = rule.build(occurrence.attributes, occurrence.body)
    if directive is None:
        return _skip(occurrence, "no usable content")
    return directive


def _skip(occurrence: TagOccurrence, reason: str) -> None:
    logger.debug(
        "directive-skip tag=%s offset=%s reason=%s",
        occurrence.rule.tag,
        occurrence.start,
        reason,
    )
    return None


def extract_directives(text: str) -> list[Directive]:
    """Return every well-formed directive in textual order."""
    if not isinstance(text, str) or not text:
        return []
    directives: list[Directive] = []
    for occurrence in scan_tags(text):
        directive = build_directive(occurrence)
        if directive is not None:
            directives.append(directive)
    return directives


def extract_operations(text: str) -> OperationBatch:
    """Parse response text into an ``OperationBatch``; malformed tags are skipped."""
    grouped: dict[Domain, list[Directive]] = {domain: [] for domain in Domain}
    for directive in extract_directives(text):
        grouped[directive.domain].append(directive)
    batch = OperationBatch(
        terminal=tuple(grouped[Domain.TERMINAL]),
        file=tuple(grouped[Domain.FILE]),
        build=tuple(grouped[Domain.BUILD]),
        deploy=tuple(grouped[Domain.DEPLOY]),
        git=tuple(grouped[Domain.GIT]),
    )
    if not batch.is_empty:
        logger.debug("directive-extract counts=%s", batch.counts())
    return batch
