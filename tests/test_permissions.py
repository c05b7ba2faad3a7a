import pytest

from wstore.permissions import *


def test_all_and_none() -> None:
    assert Permission.none() == Permission(0)
    for member in Permission:
        assert member in Permission.all()
        assert member not in Permission.none()


def test_to_json() -> None:
    perms = Permission.VIEW | Permission.EDIT
    data = to_json(perms)
    assert set(data) == {member.name.lower() for member in Permission}
    assert data["view"] is True
    assert data["edit"] is True
    assert data["ban"] is False


def test_from_json_missing_entries() -> None:
    assert from_json({"view": True, "rate": False}) == Permission.VIEW
    assert from_json({}) == Permission.none()


def test_from_json_unknown() -> None:
    with pytest.raises(ValueError) as excinfo:
        from_json({"view": True, "fly": True})
    assert "fly" in str(excinfo.value)


@pytest.mark.parametrize("perms", [
    Permission.none(),
    Permission.all(),
    Permission.VIEW,
    Permission.VIEW | Permission.EDIT | Permission.CREATE,
    Permission.BAN | Permission.MANAGE_SETTINGS,
])
def test_roundtrip(perms) -> None:
    assert from_json(to_json(perms)) == perms
    assert from_bits(to_bits(perms)) == perms


def test_to_bits() -> None:
    bits = to_bits(Permission.VIEW | Permission.TAG)
    assert len(bits) == PERMSET_WIDTH
    assert bits == "1000100000000000"


def test_from_bits_invalid() -> None:
    with pytest.raises(ValueError):
        from_bits("10x0000000000000")


def test_from_bits_undefined() -> None:
    with pytest.raises(ValueError):
        from_bits("0000000000000001")
