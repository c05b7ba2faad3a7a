from typing import Iterable

__all__ = ["normalize_tags", "tag_diff"]


def normalize_tags(tags: Iterable[str]) -> list[str]:
    """Deduplicate and sort tags, dropping empty ones."""
    return sorted({tag.strip() for tag in tags if tag.strip()})


def tag_diff(current_tags: Iterable[str], new_tags: Iterable[str]) -> tuple[list[str], list[str]]:
    """
    Compute the change from ``current_tags`` to ``new_tags``.

    :returns:
        a tuple ``(added_tags, removed_tags)`` of sorted lists, which never
        share an element
    """
    current = set(current_tags)
    new = set(normalize_tags(new_tags))
    added = sorted(new - current)
    removed = sorted(current - new)
    return added, removed
