import re
from typing import Iterator

from sqlalchemy import select
from sqlalchemy.orm import Session

# Matches String(255) on collections.url_slug and recipes.url_slug
SLUG_MAX_LENGTH = 255

_FORK_SUFFIX = re.compile(r"-copy(-\d+)?$")


def slugify(text: str) -> str:
    # Convert to lowercase, replace spaces/symbols with hyphens
    slug = text.lower().replace("&", "and")
    slug = re.sub(r'[^a-z0-9]+', '-', slug)
    slug = slug.strip('-')
    return slug or "untitled"


def fork_slug_candidates(base: str, limit: int, max_length: int = SLUG_MAX_LENGTH) -> Iterator[str]:
    """Yield ``base-copy``, ``base-copy-2``, ... at most ``limit`` candidates.

    A fork of a fork reuses the stem (``pie-copy`` forks to ``pie-copy-2``,
    not ``pie-copy-copy``), and the stem is cut so every candidate fits
    ``max_length``.
    """
    stem = _FORK_SUFFIX.sub("", slugify(base))
    for attempt in range(1, limit + 1):
        suffix = "-copy" if attempt == 1 else f"-copy-{attempt}"
        yield f"{stem[:max_length - len(suffix)].rstrip('-')}{suffix}"


def allocate_fork_slug(db: Session, model, household_id: int, base: str, limit: int) -> str | None:
    """Return the first fork slug not yet used by ``household_id``, or None.

    Runs inside the caller's transaction, so slugs taken by forks flushed
    earlier in the same request are seen too.
    """
    for candidate in fork_slug_candidates(base, limit):
        taken = db.scalar(
            select(model.id).where(model.household_id == household_id, model.url_slug == candidate)
        )
        if taken is None:
            return candidate
    return None
