"""Extract structured replies from free-form model output.

Models are instructed to think inside ``[REASONING_START]`` / ``[REASONING_END]``
markers and to put any structured suggestion in a JSON object. This module
removes the reasoning and looks for that object in two stages:

1. A fenced code block tagged ``json``.
2. The widest ``{ ... }`` span in the text.

Each span is decoded independently. The first one that decodes to a JSON
object wins; anything else degrades silently to a plain text reply.
"""

import json
import logging
import re
from collections.abc import Iterator

from .core import ParsedReply

logger = logging.getLogger(__name__)

REASONING_PATTERN = re.compile(r"\[REASONING_START\][\s\S]*?(?:\[REASONING_END\]|$)")
FENCED_JSON_PATTERN = re.compile(r"```json[ \t]*\n([\s\S]*?)\n[ \t]*```")
BRACE_SPAN_PATTERN = re.compile(r"\{[\s\S]*\}")


def strip_reasoning(raw: str) -> str:
    """Remove reasoning spans, including an unterminated trailing one."""
    return REASONING_PATTERN.sub("", raw)


def iter_json_spans(text: str) -> Iterator[str]:
    """Yield candidate JSON spans: the fenced block first, then the brace span."""
    fenced = FENCED_JSON_PATTERN.search(text)
    if fenced:
        yield fenced.group(1)

    braces = BRACE_SPAN_PATTERN.search(text)
    if braces:
        yield braces.group(0)


def parse_reply(raw: str | None) -> ParsedReply:
    """Turn raw model output into a structured or plain text reply. Never raises."""
    if not raw:
        return ParsedReply(kind="text", text="")

    cleaned = strip_reasoning(raw)

    for span in iter_json_spans(cleaned):
        try:
            payload = json.loads(span)
        except json.JSONDecodeError as e:
            logger.debug("Discarding undecodable JSON span: %s", e)
            continue
        if isinstance(payload, dict):
            return ParsedReply(kind="structured", payload=payload)

    return ParsedReply(kind="text", text=cleaned)
