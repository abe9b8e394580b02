"""Topic extraction and relevance filtering.

Topics come from the user's request (what they want to build); the filter
keeps only the parts of a page near lines that mention one of them. When
nothing matches, the filter degrades to a word-bounded prefix instead of
returning an empty context.
"""

import re

from docs_browse.config import settings

# UI / component nouns
UI_TOPICS = (
    "pricing",
    "card",
    "form",
    "dashboard",
    "modal",
    "table",
    "chart",
    "button",
    "navbar",
    "sidebar",
    "login",
    "signup",
    "profile",
    "checkout",
    "cart",
    "list",
    "grid",
    "calendar",
    "search",
    "settings",
    "landing",
    "hero",
    "footer",
    "menu",
)

# Integration nouns
INTEGRATION_TOPICS = (
    "payment",
    "billing",
    "subscription",
    "auth",
    "authentication",
    "api",
    "webhook",
    "analytics",
    "email",
    "notification",
    "upload",
    "storage",
    "database",
    "user",
    "customer",
    "invoice",
    "product",
    "order",
)

# Verbs that mean "show me how to implement it"
ACTION_VERBS = (
    "create",
    "build",
    "generate",
    "make",
    "implement",
    "add",
    "design",
    "integrate",
    "show",
    "display",
)

IMPLEMENTATION_TOPIC = "implementation"

# Extra line markers for the implementation topic
_IMPLEMENTATION_MARKERS = ("example", "code", "sample")

# Lines longer than this are split into sentences before filtering
_LONG_LINE = 300
_SENTENCE_BREAK_RE = re.compile(r"(?<=[.!?])\s+")


def _word_re(word: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(word)}(?:s|es)?\b")


_TOPIC_RES = {word: _word_re(word) for word in UI_TOPICS + INTEGRATION_TOPICS}
_VERB_RES = [_word_re(verb) for verb in ACTION_VERBS]


def extract_topics(request: str | None) -> set[str]:
    """Derive relevance topics from a natural-language request.

    Matches whole words (with an optional plural suffix) against the UI and
    integration vocabularies; any action verb adds the ``implementation``
    topic.
    """
    if not request:
        return set()
    text = request.lower()
    topics = {word for word, pattern in _TOPIC_RES.items() if pattern.search(text)}
    if any(pattern.search(text) for pattern in _VERB_RES):
        topics.add(IMPLEMENTATION_TOPIC)
    return topics


def _plural(word: str) -> str:
    if word.endswith("y") and len(word) > 1 and word[-2] not in "aeiou":
        return word[:-1] + "ies"
    if word.endswith(("s", "x", "ch", "sh")):
        return word + "es"
    return word + "s"


def _match_terms(topics: set[str]) -> tuple[str, ...]:
    terms: set[str] = set()
    for topic in topics:
        topic = topic.lower().strip()
        if not topic:
            continue
        terms.add(topic)
        terms.add(_plural(topic))
        if topic == IMPLEMENTATION_TOPIC:
            terms.update(_IMPLEMENTATION_MARKERS)
    return tuple(sorted(terms))


def split_into_lines(content: str) -> list[str]:
    """Split content into lines, breaking very long lines at sentence ends.

    Normalized HTML arrives as one long line; sentence-sized lines keep
    relevance windows meaningful. Text is never rewritten, only split.
    """
    lines: list[str] = []
    for line in content.split("\n"):
        if len(line) > _LONG_LINE:
            lines.extend(_SENTENCE_BREAK_RE.split(line))
        else:
            lines.append(line)
    return lines


def truncate_words(content: str, max_words: int) -> str:
    """Return at most *max_words* words of *content*."""
    words = content.split()
    if len(words) <= max_words:
        return content
    return " ".join(words[:max_words])


def filter_relevant_content(
    content: str,
    topics: set[str] | None,
    window: int | None = None,
    fallback_words: int | None = None,
) -> str:
    """Keep lines that mention a topic plus a window of context around them.

    Args:
        content: Page text.
        topics: Relevance topics; empty or None returns *content* unchanged.
        window: Lines kept before and after each match (default:
            RELEVANCE_WINDOW).
        fallback_words: Prefix size in words when no line matches
            (default: FALLBACK_WORD_LIMIT).

    Returns:
        The kept lines in original order joined by newlines. Never longer
        than *content*.
    """
    if not topics or not content:
        return content

    window = settings.relevance_window if window is None else window
    fallback_words = (
        settings.fallback_word_limit if fallback_words is None else fallback_words
    )
    terms = _match_terms(topics)
    if not terms:
        return content

    lines = split_into_lines(content)
    keep = [False] * len(lines)
    for i, line in enumerate(lines):
        lower = line.lower()
        if any(term in lower for term in terms):
            start = max(0, i - window)
            end = min(len(lines), i + window + 1)
            for j in range(start, end):
                keep[j] = True

    if not any(keep):
        return truncate_words(content, fallback_words)

    return "\n".join(line for line, kept in zip(lines, keep, strict=True) if kept)
