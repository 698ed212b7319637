"""Minimal value extraction from tag-delimited (XML) response bodies.

AWS Query API responses are small and regular, so values are located by
scanning for literal ``<tag>`` / ``</tag>`` pairs rather than by parsing a
document tree. Attributes and nesting of the same tag are not supported.
"""

from imageupload.core.exceptions import MalformedResponseError, MissingFieldError


def extract_all(body: str, tag: str) -> list[str]:
    """Return the contents of every ``<tag>...</tag>`` in document order.

    Raises:
        MalformedResponseError: If an opening tag has no closing tag
    """
    open_tag = f"<{tag}>"
    close_tag = f"</{tag}>"
    values: list[str] = []

    pos = 0
    while (start := body.find(open_tag, pos)) != -1:
        start += len(open_tag)
        end = body.find(close_tag, start)
        if end == -1:
            raise MalformedResponseError(f"Unterminated <{tag}> in response:\n{body}")
        values.append(body[start:end])
        pos = end + len(close_tag)

    return values


def extract_first(body: str, tag: str) -> str | None:
    """Return the contents of the first ``<tag>``, or None if absent."""
    values = extract_all(body, tag)
    return values[0] if values else None


def require(body: str, tag: str, operation: str) -> str:
    """Return the first ``<tag>`` contents of an ``operation`` response.

    Raises:
        MissingFieldError: If the tag is absent
    """
    value = extract_first(body, tag)
    if value is None:
        raise MissingFieldError(operation, tag, body)
    return value
