"""GitLab event classification."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum

from multidict import CIMultiDict

from runn.errors import InvalidEventHeaderError, MissingEventHeaderError, UnsupportedEventError

EVENT_HEADER = "X-Gitlab-Event"

HeaderValue = str | bytes
Headers = Mapping[str, HeaderValue]


class EventKind(Enum):
    PUSH = "push"
    MERGE_REQUEST = "merge_request"


_EVENT_KINDS: dict[str, EventKind] = {
    "Push Hook": EventKind.PUSH,
    "Merge Request Hook": EventKind.MERGE_REQUEST,
}


def header_text(headers: Headers, name: str) -> str | None:
    """Return header *name* as text, or None when absent.

    Lookup is case-insensitive. Raises ``UnicodeError`` for values that are
    not valid UTF-8: raw bytes that fail to decode, or text holding the
    surrogate escapes aiohttp produces for undecodable header bytes.
    """
    value = CIMultiDict(headers).get(name)
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    value.encode("utf-8")
    return value


def classify_event(value: str | None) -> EventKind:
    """Map an ``X-Gitlab-Event`` value to an EventKind.

    ``None`` means the header was absent; an empty value is unsupported.
    """
    if value is None:
        raise MissingEventHeaderError("Missing X-Gitlab-Event header")
    kind = _EVENT_KINDS.get(value)
    if kind is None:
        raise UnsupportedEventError(value)
    return kind


def event_from_headers(headers: Headers) -> EventKind:
    try:
        value = header_text(headers, EVENT_HEADER)
    except UnicodeError as exc:
        msg = "X-Gitlab-Event header is not valid text"
        raise InvalidEventHeaderError(msg) from exc
    return classify_event(value)
