#! /usr/bin/env python3

"""
Capabilities granted by a role within a wiki.

A permission set is stored in the ``roles.permset`` column. The current
schema stores it as a JSON object mapping the lower-case capability name to a
boolean, e.g. ``{"view": true, "edit": true, "ban": false, ...}``. The initial
schema stored a fixed-width bit string where the n-th bit (from the left)
corresponds to the n-th capability defined below, so the order of the members
must never change. New capabilities may only be appended.

Deciding whether a user may perform an action is up to the application, this
module only defines the encoding.
"""

import enum

__all__ = ["Permission", "PERMSET_WIDTH", "to_json", "from_json", "to_bits", "from_bits"]

# width of the BIT(n) column in the initial schema
PERMSET_WIDTH = 16


class Permission(enum.Flag):
    VIEW = enum.auto()
    EDIT = enum.auto()
    CREATE = enum.auto()
    RENAME = enum.auto()
    TAG = enum.auto()
    DELETE = enum.auto()
    RESTORE = enum.auto()
    UPLOAD = enum.auto()
    RATE = enum.auto()
    LOCK = enum.auto()
    MANAGE_MEMBERS = enum.auto()
    MANAGE_ROLES = enum.auto()
    BAN = enum.auto()
    MANAGE_SETTINGS = enum.auto()

    @classmethod
    def none(cls):
        return cls(0)

    @classmethod
    def all(cls):
        perms = cls(0)
        for member in cls:
            perms |= member
        return perms


assert len(Permission) <= PERMSET_WIDTH


def to_json(perms):
    """
    Encode a :py:class:`Permission` as a JSON-compatible dict with an entry
    for every capability.
    """
    return {member.name.lower(): member in perms for member in Permission}


def from_json(value):
    """
    Decode a dict created by :py:func:`to_json`. Missing capabilities are
    treated as not granted.

    :raises ValueError: on unknown capability names
    """
    perms = Permission(0)
    for name, granted in value.items():
        try:
            member = Permission[name.upper()]
        except KeyError:
            raise ValueError(f"unknown permission: '{name}'") from None
        if granted:
            perms |= member
    return perms


def to_bits(perms, width=PERMSET_WIDTH):
    """
    Encode a :py:class:`Permission` as a string of ``width`` binary digits
    (the textual form of PostgreSQL's ``BIT(n)`` type).
    """
    bits = ["1" if member in perms else "0" for member in Permission]
    bits += ["0"] * (width - len(bits))
    return "".join(bits)


def from_bits(bits):
    """
    Decode a bit string created by :py:func:`to_bits`.

    :raises ValueError: on characters other than ``0`` and ``1`` or when
        a bit beyond the defined capabilities is set
    """
    if set(bits) - {"0", "1"}:
        raise ValueError(f"invalid bit string: '{bits}'")
    members = list(Permission)
    if "1" in bits[len(members):]:
        raise ValueError(f"bit string sets undefined permissions: '{bits}'")
    perms = Permission(0)
    for member, bit in zip(members, bits):
        if bit == "1":
            perms |= member
    return perms
