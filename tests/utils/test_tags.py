from wstore.utils import *


def test_normalize_tags() -> None:
    tags = ["scp", " euclid ", "scp", "", "  ", "alive"]
    assert normalize_tags(tags) == ["alive", "euclid", "scp"]


def test_tag_diff() -> None:
    current = ["alive", "scp", "euclid"]
    new = ["scp", "keter", "hostile", "keter"]
    added, removed = tag_diff(current, new)
    assert added == ["hostile", "keter"]
    assert removed == ["alive", "euclid"]


def test_tag_diff_disjoint() -> None:
    current = ["a", "b", "c"]
    new = ["b", "c", "d"]
    added, removed = tag_diff(current, new)
    assert not set(added) & set(removed)
    assert added == sorted(added)
    assert removed == sorted(removed)


def test_tag_diff_no_change() -> None:
    assert tag_diff(["b", "a"], ["a", "b", "a"]) == ([], [])


def test_tag_diff_from_empty() -> None:
    assert tag_diff([], ["tale", "humor"]) == (["humor", "tale"], [])
