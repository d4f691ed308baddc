"""
Exception classes.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "CodecError",
    "ConfigurationError",
    "CircularReferenceError",
    "UnknownTypeError",
    "format_path",
]


def format_path(path: tuple[str | int, ...]) -> str:
    """
    Render a path of object keys and list indices, e.g. `("items", 1, "value")` as
    `items[1].value`; the empty path is rendered as `<root>`.
    """
    text = "".join(f"[{s}]" if isinstance(s, int) else f".{s}" for s in path)
    return text.removeprefix(".") or "<root>"


class CodecError(Exception):
    """
    Base class for errors raised by codecs and their registration.
    """


class ConfigurationError(CodecError):
    """
    Invalid class or codec declaration, raised while wiring up codecs.
    """


class CircularReferenceError(CodecError, ValueError):
    """
    An object was encountered again on its own traversal path.
    """

    obj: Any
    """
    The object which closed the cycle.
    """

    path: tuple[str | int, ...]
    """
    Path at which the object was encountered the second time.
    """

    def __init__(self, obj: Any, path: tuple[str | int, ...]):
        self.obj = obj
        self.path = path
        super().__init__(
            "Converting circular structure to JSON: {} object reappears at {}".format(
                type(obj).__name__, format_path(path)
            )
        )


class UnknownTypeError(CodecError, LookupError):
    """
    A type tag has no registered class in the codec resolving it.
    """

    tag: Any
    """
    The tag found in the payload.
    """

    path: tuple[str | int, ...]
    """
    Path of the tagged object.
    """

    def __init__(self, tag: Any, path: tuple[str | int, ...] = ()):
        self.tag = tag
        self.path = path
        super().__init__(
            f'Unknown type "{tag}" in codec at {format_path(path)}. Did you forget to '
            "register the class?"
        )
