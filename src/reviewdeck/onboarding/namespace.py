"""Project namespace slugs."""

import re

_INVALID = re.compile(r"[^a-z0-9-]+")
_HYPHENS = re.compile(r"-{2,}")


def make_namespace(name: str) -> str:
    """Derive a URL-safe project namespace from a display name.

    Lowercases, turns every run of characters outside ``[a-z0-9-]`` into a
    single hyphen, collapses hyphen runs and trims hyphens at both ends.
    May return an empty string, which callers must reject.

    >>> make_namespace("My Cool App!")
    'my-cool-app'
    >>> make_namespace("  a--b  ")
    'a-b'
    """
    slug = _INVALID.sub("-", (name or "").lower())
    return _HYPHENS.sub("-", slug).strip("-")
