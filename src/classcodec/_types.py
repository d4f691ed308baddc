"""
Types used throughout package.
"""

from __future__ import annotations

from typing import Any, Callable, TypeAlias

__all__ = [
    "OmitSentinel",
    "OMIT",
    "ReplacerType",
    "ReviverType",
]


class OmitSentinel:
    def __repr__(self) -> str:
        return "OMIT"


OMIT = OmitSentinel()
"""
Returned from a replacer or reviver to remove the entry from its parent object.
"""

ReplacerType: TypeAlias = Callable[[str | int, Any], Any] | list[str]
"""
Transform applied to the resolved tree before writing text: either a function
taking the key (index for list items, `""` for the root) and value and returning the
replacement value, or a list of keys to keep in every object.
"""

ReviverType: TypeAlias = Callable[[str | int, Any], Any]
"""
Transform applied to the reconstructed tree, bottom-up, taking the key and value
and returning the replacement value.
"""
