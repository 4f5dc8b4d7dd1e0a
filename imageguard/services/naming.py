"""
Unique image naming for category images.

Format: cat_{category_id}_{timestamp_ms}_{nonce}.{ext}

    - category_id: 24 lowercase hex characters (ObjectId)
    - timestamp_ms: milliseconds since the epoch at generation time
    - nonce: zero-padded 6 digit random number

The older ``cat_{category_id}_{timestamp_ms}.{ext}`` form (no nonce) is still
accepted as unique. Anything else shaped like ``name_{digits}.{ext}`` is a
legacy name that needs migration.
"""
import re
import secrets
import threading
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional, Union

from imageguard.core.exceptions import InvalidCategoryIdError
from imageguard.core.time_utils import now_millis

CATEGORY_PREFIX = "cat"
NONCE_DIGITS = 6

_CATEGORY_ID_RE = re.compile(r"^[a-f0-9]{24}$")
_UNIQUE_RE = re.compile(
    r"^cat_(?P<category_id>[a-f0-9]{24})_(?P<timestamp>\d+)(?:_(?P<nonce>\d+))?\.(?P<ext>[a-zA-Z0-9]+)$"
)
_LEGACY_RE = re.compile(r"^(?P<stem>[^/]+)_(?P<timestamp>\d+)\.(?P<ext>[a-zA-Z0-9]+)$")
_EXTENSION_RE = re.compile(r"^[a-zA-Z0-9]+$")


@dataclass(frozen=True)
class UniqueName:
    """A filename that encodes its owning category."""
    category_id: str
    timestamp_ms: int
    nonce: Optional[str]
    extension: str

    @property
    def has_nonce(self) -> bool:
        return self.nonce is not None

    def render(self) -> str:
        parts = [CATEGORY_PREFIX, self.category_id, str(self.timestamp_ms)]
        if self.nonce is not None:
            parts.append(self.nonce)
        return f"{'_'.join(parts)}.{self.extension}"


@dataclass(frozen=True)
class LegacyName:
    """An older ``name_timestamp.ext`` filename without category ownership."""
    stem: str
    timestamp_ms: int
    extension: str


ParsedName = Union[UniqueName, LegacyName]

# Nonces handed out during the current millisecond
_issued_ms: int | None = None
_issued_nonces: set[str] = set()
_issue_lock = threading.Lock()


def _basename(filename: str) -> str:
    return PurePosixPath(filename.replace("\\", "/")).name


def _normalize_extension(original_extension: str) -> str:
    """Accept 'jpg', '.jpg' or a whole filename like 'photo.JPG'."""
    value = original_extension.strip()
    if "." in value:
        value = value.rsplit(".", 1)[1]
    if not value or not _EXTENSION_RE.match(value):
        raise ValueError(f"Invalid image extension: {original_extension!r}")
    return value.lower()


def is_valid_category_id(category_id: str) -> bool:
    return bool(category_id) and bool(_CATEGORY_ID_RE.match(category_id))


def generate(category_id: str, original_extension: str) -> str:
    """
    Generate a new unique filename for a category image.

    Two calls in the same millisecond never return the same name.

    Raises:
        InvalidCategoryIdError: If category_id is not 24 lowercase hex characters
        ValueError: If the extension is empty or contains invalid characters
    """
    global _issued_ms

    if not is_valid_category_id(category_id):
        raise InvalidCategoryIdError(
            f"Category id must be 24 lowercase hex characters, got {category_id!r}"
        )
    extension = _normalize_extension(original_extension)

    with _issue_lock:
        timestamp = now_millis()
        if timestamp != _issued_ms:
            _issued_ms = timestamp
            _issued_nonces.clear()
        nonce = f"{secrets.randbelow(10 ** NONCE_DIGITS):0{NONCE_DIGITS}d}"
        while nonce in _issued_nonces:
            nonce = f"{secrets.randbelow(10 ** NONCE_DIGITS):0{NONCE_DIGITS}d}"
        _issued_nonces.add(nonce)

    return UniqueName(category_id, timestamp, nonce, extension).render()


def parse(filename: str) -> Optional[ParsedName]:
    """Parse a filename (or path) into its naming variant, or None if unrecognized."""
    name = _basename(filename)

    match = _UNIQUE_RE.match(name)
    if match:
        return UniqueName(
            category_id=match.group("category_id"),
            timestamp_ms=int(match.group("timestamp")),
            nonce=match.group("nonce"),
            extension=match.group("ext"),
        )

    match = _LEGACY_RE.match(name)
    if match:
        return LegacyName(
            stem=match.group("stem"),
            timestamp_ms=int(match.group("timestamp")),
            extension=match.group("ext"),
        )

    return None


def is_unique_format(filename: str) -> bool:
    return isinstance(parse(filename), UniqueName)


def is_legacy_format(filename: str) -> bool:
    return isinstance(parse(filename), LegacyName)


def extract_category_id(filename: str) -> Optional[str]:
    """Category id encoded in a unique filename; None for anything else."""
    parsed = parse(filename)
    if isinstance(parsed, UniqueName):
        return parsed.category_id
    return None


def has_category_prefix(filename: str, category_id: str) -> bool:
    return _basename(filename).startswith(f"{CATEGORY_PREFIX}_{category_id}_")


def is_valid_association(category_id: Optional[str], image_path: Optional[str]) -> bool:
    """
    True if image_path names a current-format unique file owned by category_id.

    Names without the random nonce are accepted by is_unique_format but are not
    valid associations for newly written records.
    """
    if not category_id or not image_path:
        return False
    parsed = parse(image_path)
    return (
        isinstance(parsed, UniqueName)
        and parsed.has_nonce
        and parsed.category_id == category_id
    )
