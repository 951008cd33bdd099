"""
Slug generation for articles.

``generate_unique_slug`` is pure apart from the existence oracle it is
handed; callers persist the returned slug themselves.
"""
import re
from typing import Awaitable, Callable

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

# Used when a title has no ASCII letters or digits at all.
EMPTY_SLUG_PLACEHOLDER = "article"


def slugify(title: str) -> str:
    """Return the lowercase, hyphen-delimited base slug for *title*."""
    return _NON_ALNUM_RE.sub("-", title.strip().lower()).strip("-")


async def generate_unique_slug(
    title: str, exists: Callable[[str], Awaitable[bool]]
) -> str:
    """
    Return the first of ``base``, ``base-1``, ``base-2`` … for which
    ``await exists(candidate)`` is false.

    A title that slugifies to the empty string is given the base
    ``EMPTY_SLUG_PLACEHOLDER`` so the result is never empty.
    """
    base = slugify(title) or EMPTY_SLUG_PLACEHOLDER
    slug = base
    count = 1
    while await exists(slug):
        slug = f"{base}-{count}"
        count += 1
    return slug
