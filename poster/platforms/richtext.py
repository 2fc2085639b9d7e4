"""
Bluesky rich-text facet detection.

Facets annotate byte ranges of the post text. Offsets are counted in UTF-8
bytes, so all scanning is done on the encoded caption. Bare domains such as
`example.com/path` are linked as https URLs when their TLD is recognised.
"""

import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

MENTION_FEATURE = "app.bsky.richtext.facet#mention"
LINK_FEATURE = "app.bsky.richtext.facet#link"
TAG_FEATURE = "app.bsky.richtext.facet#tag"

MAX_TAG_LENGTH = 64

MENTION_RE = re.compile(
    rb"(?:^|(?<=[\s(]))@"
    rb"((?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+"
    rb"[a-zA-Z](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)"
)
URL_RE = re.compile(rb"(?:^|(?<=[\s(]))(https?://[^\s]+)")
BARE_DOMAIN_RE = re.compile(
    rb"(?:^|(?<=[\s(]))"
    rb"((?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+([a-zA-Z]{2,63}))"
    rb"(?=[/\s.,;:!?)]|$)([^\s]*)"
)
TAG_RE = re.compile(rb"(?:^|(?<=\s))#([^\s#]+)")

# Bare domains only become links when they end in one of these
KNOWN_TLDS = frozenset({
    "com", "net", "org", "edu", "gov", "mil", "int", "info", "biz",
    "io", "co", "ai", "app", "dev", "me", "tv", "fm", "gg", "ly", "so", "to",
    "xyz", "site", "online", "tech", "blog", "news", "page", "social", "art",
    "us", "uk", "ca", "au", "nz", "ie", "de", "fr", "es", "it", "nl", "be",
    "ch", "at", "se", "no", "fi", "dk", "pl", "pt", "eu", "jp", "kr", "cn",
    "tw", "hk", "sg", "in", "br", "mx", "ar", "cl", "za", "ru",
})

TRAILING_PUNCTUATION = b".,;:!?"

HandleResolver = Callable[[str], Awaitable[Optional[str]]]


@dataclass(frozen=True)
class DetectedSpan:
    """A candidate facet before handle resolution."""

    kind: str
    start: int
    end: int
    value: str


def _trim_url(url: bytes) -> bytes:
    url = url.rstrip(TRAILING_PUNCTUATION)
    # A closing parenthesis belongs to the URL only if it opened one.
    if url.endswith(b")") and b"(" not in url:
        url = url[:-1].rstrip(TRAILING_PUNCTUATION)
    return url


def _trim_tag(tag: bytes) -> bytes:
    return tag.rstrip(TRAILING_PUNCTUATION + b")\"'")


def find_spans(text: str) -> List[DetectedSpan]:
    """Locate mentions, links and hashtags by UTF-8 byte offset."""
    encoded = text.encode("utf-8")
    spans: List[DetectedSpan] = []

    for match in MENTION_RE.finditer(encoded):
        handle = match.group(1).decode("utf-8").lower()
        spans.append(DetectedSpan("mention", match.start(0), match.end(1), handle))

    for match in URL_RE.finditer(encoded):
        url = _trim_url(match.group(1))
        if len(url) <= len(b"https://"):
            continue
        start = match.start(1)
        spans.append(DetectedSpan("link", start, start + len(url), url.decode("utf-8")))

    for match in BARE_DOMAIN_RE.finditer(encoded):
        if match.group(2).decode("ascii").lower() not in KNOWN_TLDS:
            continue
        link = _trim_url(match.group(1) + match.group(3))
        start = match.start(1)
        uri = "https://" + link.decode("utf-8", errors="ignore")
        spans.append(DetectedSpan("link", start, start + len(link), uri))

    for match in TAG_RE.finditer(encoded):
        raw = _trim_tag(match.group(1))
        tag = raw.decode("utf-8", errors="ignore")
        if not tag or tag.isdigit() or len(tag) > MAX_TAG_LENGTH:
            continue
        spans.append(DetectedSpan("tag", match.start(0), match.start(1) + len(raw), tag))

    spans.sort(key=lambda span: span.start)
    return _drop_overlaps(spans)


def _drop_overlaps(spans: List[DetectedSpan]) -> List[DetectedSpan]:
    kept: List[DetectedSpan] = []
    for span in spans:
        if kept and span.start < kept[-1].end:
            continue
        kept.append(span)
    return kept


def _facet(span: DetectedSpan, feature: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "index": {"byteStart": span.start, "byteEnd": span.end},
        "features": [feature],
    }


async def detect_facets(text: str, resolve_handle: HandleResolver) -> List[Dict[str, Any]]:
    """
    Build facets for a caption.

    Args:
        text: The post text
        resolve_handle: Coroutine mapping a handle to its DID, or None when
            the handle does not resolve

    Returns:
        Facets ordered by byteStart; unresolved mentions are omitted
    """
    facets: List[Dict[str, Any]] = []
    for span in find_spans(text):
        if span.kind == "mention":
            did = await resolve_handle(span.value)
            if did:
                facets.append(_facet(span, {"$type": MENTION_FEATURE, "did": did}))
        elif span.kind == "link":
            facets.append(_facet(span, {"$type": LINK_FEATURE, "uri": span.value}))
        else:
            facets.append(_facet(span, {"$type": TAG_FEATURE, "tag": span.value}))
    return facets
