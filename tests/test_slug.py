"""
Slug generation tests — normalisation rules and collision probing against
an in-memory existence oracle.
"""
import re

import pytest

from app.services.slug import EMPTY_SLUG_PLACEHOLDER, generate_unique_slug, slugify

SLUG_RE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


def _oracle(taken: set[str]):
    async def exists(slug: str) -> bool:
        return slug in taken

    return exists


# ---------------------------------------------------------------------------
# slugify
# ---------------------------------------------------------------------------

def test_slugify_basic():
    assert slugify("How to Train Your Dragon!") == "how-to-train-your-dragon"


def test_slugify_collapses_runs_and_strips_edges():
    assert slugify("  --Hello,   World!!--  ") == "hello-world"
    assert slugify("UPPER_case___under") == "upper-case-under"
    assert slugify("a & b @ c") == "a-b-c"


def test_slugify_drops_non_ascii_letters():
    assert slugify("Café au lait") == "caf-au-lait"


def test_slugify_punctuation_only_is_empty():
    assert slugify("!!! ???") == ""
    assert slugify("") == ""


# ---------------------------------------------------------------------------
# generate_unique_slug
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unique_slug_without_collision():
    slug = await generate_unique_slug("How to Train Your Dragon!", _oracle(set()))
    assert slug == "how-to-train-your-dragon"


@pytest.mark.asyncio
async def test_unique_slug_appends_first_free_suffix():
    taken = {"how-to-train-your-dragon"}
    slug = await generate_unique_slug("How to Train Your Dragon!", _oracle(taken))
    assert slug == "how-to-train-your-dragon-1"

    taken |= {"how-to-train-your-dragon-1", "how-to-train-your-dragon-2"}
    slug = await generate_unique_slug("How to Train Your Dragon", _oracle(taken))
    assert slug == "how-to-train-your-dragon-3"


@pytest.mark.asyncio
async def test_unique_slug_never_repeats_against_growing_set():
    taken: set[str] = set()
    for _ in range(25):
        slug = await generate_unique_slug("Same Title", _oracle(taken))
        assert slug not in taken
        taken.add(slug)
    assert len(taken) == 25


@pytest.mark.asyncio
async def test_empty_title_uses_placeholder():
    taken: set[str] = set()
    first = await generate_unique_slug("?!", _oracle(taken))
    assert first == EMPTY_SLUG_PLACEHOLDER
    taken.add(first)
    second = await generate_unique_slug("", _oracle(taken))
    assert second == f"{EMPTY_SLUG_PLACEHOLDER}-1"


@pytest.mark.asyncio
@pytest.mark.parametrize("title", [
    "Hello",
    "  spaced   out  ",
    "trailing!!!",
    "---",
    "Ünïcödé only",
    "2024: a year in review",
    "émoji 🐉 dragons",
])
async def test_unique_slug_shape(title):
    taken = {slugify(title) or EMPTY_SLUG_PLACEHOLDER}
    slug = await generate_unique_slug(title, _oracle(taken))
    assert SLUG_RE.match(slug), slug
