import re
import unicodedata

__all__ = ["SLUG_PATTERN", "is_valid_slug", "normalize_slug"]

# the same character class is enforced by CHECK constraints in the database
SLUG_PATTERN = "^[a-z0-9:_-]+$"

_slug_re = re.compile(SLUG_PATTERN)
_unsafe_re = re.compile(r"[^a-z0-9:_]+")
_colon_re = re.compile(r"-*:[-:]*")


def is_valid_slug(slug: str) -> bool:
    return _slug_re.fullmatch(slug) is not None


def normalize_slug(text: str) -> str:
    """
    Convert arbitrary text (typically a page title) into a slug.

    Accents are stripped, letters are lower-cased and every run of other
    characters is replaced by a single dash. Colons separate categories
    (e.g. ``component:image-block``), so dashes around them are dropped.

    >>> normalize_slug("Component: Image Block")
    'component:image-block'

    :raises ValueError: if nothing usable is left of ``text``
    """
    slug = unicodedata.normalize("NFKD", text)
    slug = slug.encode("ascii", "ignore").decode("ascii")
    slug = slug.lower()
    slug = _unsafe_re.sub("-", slug)
    slug = _colon_re.sub(":", slug)
    slug = slug.strip("-:")
    if not slug:
        raise ValueError(f"cannot make a slug from {text!r}")
    return slug
