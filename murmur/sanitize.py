"""Extract a clean answer string from text-generation output."""

from __future__ import annotations

import json
import logging
import re

logger = logging.getLogger(__name__)

# Words a model uses for "corrected" when it announces its answer
CORRECTED_SYNONYMS = (
    "corrected",
    "cleaned up",
    "cleaned-up",
    "cleaned",
    "fixed",
    "polished",
    "revised",
    "edited",
    "improved",
    "rewritten",
    "formatted",
    "proofread",
    "updated",
)

# Leading phrases that may come before the preamble proper ("Sure! Here's ...")
LEAD_INS = ("sure", "okay", "ok", "of course", "certainly", "absolutely")

# Conversational preambles. Each entry is a regex fragment; ``{synonym}``
# expands to CORRECTED_SYNONYMS. All of them must end with a colon.
PREAMBLE_PATTERNS = (
    r"here(?:'s|’s| is) (?:the |your )?(?:(?:{synonym}) )?(?:text|version|transcription|result|sentence)\s*:",
    r"(?:the )?(?:{synonym}) (?:text|version|transcription)(?: is)?\s*:",
    r"i(?:'ve|’ve| have) (?:{synonym}) (?:the|your) text\s*:",
    r"(?:output|result|answer)\s*:",
)

QUOTE_PAIRS = {
    '"': '"',
    "'": "'",
    "“": "”",
    "‘": "’",
    "«": "»",
    "„": "“",
    "`": "`",
}

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def compile_preamble(
    patterns: tuple[str, ...] = PREAMBLE_PATTERNS,
    synonyms: tuple[str, ...] = CORRECTED_SYNONYMS,
    lead_ins: tuple[str, ...] = LEAD_INS,
) -> re.Pattern[str]:
    synonym = "|".join(re.escape(s) for s in synonyms)
    body = "|".join(p.format(synonym=synonym) for p in patterns)
    lead = "|".join(re.escape(s) for s in lead_ins)
    return re.compile(
        rf"^\s*(?:(?:{lead})\s*[,!.]?\s*)?(?:{body})\s*",
        re.IGNORECASE,
    )


PREAMBLE_RE = compile_preamble()


def extract_json_text(raw: str) -> str | None:
    """
    Return the string ``text`` field of a JSON object response.

    Returns None when the response is not a JSON object or has no string
    ``text`` field.
    """
    candidate = raw.strip()
    if match := _FENCE.match(candidate):
        candidate = match.group(1)
    try:
        data = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    if isinstance(data, dict) and isinstance(data.get("text"), str):
        return data["text"]
    return None


def strip_preamble(text: str, pattern: re.Pattern[str] = PREAMBLE_RE) -> str:
    """Remove one leading conversational preamble such as "Here's the corrected text:"."""
    stripped = pattern.sub("", text, count=1)
    if stripped != text:
        logger.debug("Stripped preamble from model output")
    return stripped


def _quotes_balanced(inner: str, opening: str, closing: str) -> bool:
    """True when every quote inside ``inner`` opens before it closes."""
    depth = 0
    for i, ch in enumerate(inner):
        if ch != opening and ch != closing:
            continue
        before = inner[i - 1] if i else " "
        after = inner[i + 1] if i + 1 < len(inner) else " "
        if opening == closing:
            if before.isalnum() and after.isalnum():
                continue  # apostrophe
            is_open = before.isspace() or before in "([{"
        else:
            is_open = ch == opening
        depth += 1 if is_open else -1
        if depth < 0:
            return False
    return depth == 0


def strip_wrapping_quotes(text: str) -> str:
    """Remove one layer of quotes, only when they wrap the whole text."""
    text = text.strip()
    if len(text) < 2:
        return text
    closing = QUOTE_PAIRS.get(text[0])
    if closing is None or text[-1] != closing:
        return text
    inner = text[1:-1]
    # '"a" and "b"' starts and ends with quotes but is not wrapped by them
    if not _quotes_balanced(inner, text[0], closing):
        return text
    return inner.strip()


def clean_completion(raw: str, pattern: re.Pattern[str] = PREAMBLE_RE) -> str:
    """Preamble and quote stripping for output that did not parse as JSON."""
    return strip_wrapping_quotes(strip_preamble(raw.strip(), pattern))


def sanitize_completion(raw: str, pattern: re.Pattern[str] = PREAMBLE_RE) -> str:
    """
    Best-effort clean answer from a model response.

    A JSON object with a string ``text`` field wins verbatim; anything else is
    cleaned with the preamble table.
    """
    text = extract_json_text(raw)
    if text is not None:
        return text
    return clean_completion(raw, pattern)
