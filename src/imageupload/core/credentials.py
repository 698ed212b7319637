"""AWS credential file loading."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from imageupload.core.exceptions import CredentialsError

logger = logging.getLogger(__name__)

KEY_ID_NAME = "ACCESS_KEY_ID"
KEY_SECRET_NAME = "ACCESS_KEY_SECRET"


@dataclass(frozen=True)
class Credentials:
    """AWS access key pair. The secret never appears in repr or logs."""

    key_id: str
    secret: str = field(repr=False)

    def __post_init__(self):
        if not self.key_id or not self.secret:
            raise ValueError("Credentials need a non-empty key id and secret")


def parse_credentials(text: str, source: str = "<string>") -> Credentials:
    """Parse the contents of a credential file.

    Every line must be terminated and be either ``ACCESS_KEY_ID=<value>`` or
    ``ACCESS_KEY_SECRET=<value>``; each key must appear exactly once.

    Args:
        text: File contents
        source: Name used in error messages

    Returns:
        Parsed credentials

    Raises:
        CredentialsError: If the contents do not follow the format
    """
    values: dict[str, str] = {}
    segments = text.split("\n")
    # Text after the final newline is an unterminated line
    last = segments.pop()
    if last:
        segments.append(last)

    for index, segment in enumerate(segments):
        if index == len(segments) - 1 and last and "\r" not in last:
            raise CredentialsError(f"Missing EOL in {source}")
        # A line ends at its first CR or LF
        line = segment.split("\r", 1)[0]

        name, sep, value = line.partition("=")
        if not sep or name not in (KEY_ID_NAME, KEY_SECRET_NAME):
            raise CredentialsError(
                f"Lines in {source} must be ACCESS_KEY_(ID|SECRET)=..."
            )
        if name in values:
            raise CredentialsError(f"{name} specified twice")
        values[name] = value

    if not values.get(KEY_ID_NAME) or not values.get(KEY_SECRET_NAME):
        raise CredentialsError(f"Need {KEY_ID_NAME} and {KEY_SECRET_NAME}")

    return Credentials(key_id=values[KEY_ID_NAME], secret=values[KEY_SECRET_NAME])


def load_credentials(path: str | Path) -> Credentials:
    """Read and parse a credential file from disk."""
    path = Path(path)
    try:
        # Decoded from bytes: text mode would turn a lone CR into LF
        text = path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CredentialsError(f"Cannot read AWS keys from {path}: {e}") from e

    credentials = parse_credentials(text, source=str(path))
    logger.debug("Loaded AWS credentials", extra={"key_file": str(path)})
    return credentials
