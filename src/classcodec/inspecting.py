"""
Utilities to inspect instances, classes and codecs.
"""

from __future__ import annotations

import dataclasses
import inspect
from types import GenericAlias, NoneType, UnionType
from typing import Any, Callable, Union, get_args, get_origin, get_type_hints

from .exceptions import ConfigurationError

__all__ = [
    "PRIMITIVE_TYPES",
    "CODEC_METHODS",
    "is_object",
    "has_properties",
    "own_properties",
    "representative_properties",
    "annotated_properties",
    "check_codec",
]

PRIMITIVE_TYPES = (str, int, float, bool, NoneType)
"""
Types passed through to the text codec as-is.
"""

CODEC_METHODS = ("stringify", "parse", "register")
"""
Methods an object must implement to be used as a codec.
"""


def is_object(value: Any) -> bool:
    """
    Whether the value is a container or instance rather than a primitive.
    """
    return not isinstance(value, PRIMITIVE_TYPES)


def has_properties(obj: Any) -> bool:
    """
    Whether the instance stores its state in `__dict__` or `__slots__`, i.e. can be
    represented by its own properties.
    """
    return hasattr(obj, "__dict__") or any(
        "__slots__" in base.__dict__ for base in type(obj).__mro__[:-1]
    )


def own_properties(obj: Any) -> dict[str, Any]:
    """
    Get the properties set on an instance: entries of `__dict__` followed by any
    populated `__slots__`, including those of base classes.
    """
    props: dict[str, Any] = dict(getattr(obj, "__dict__", {}))

    for base in type(obj).__mro__:
        slots = base.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if name in ("__dict__", "__weakref__") or name in props:
                continue
            # unset slots raise AttributeError
            try:
                props[name] = getattr(obj, name)
            except AttributeError:
                pass

    return props


def representative_properties(
    cls: type, sample: Callable[[type], Any] | None = None
) -> dict[str, Any]:
    """
    Get the properties an instance of `cls` is expected to carry.

    If `sample` is passed, it's invoked with the class to create a representative
    instance whose own properties are returned. Otherwise, properties are collected
    from the class itself: plain class attributes (excluding dunders, functions and
    other descriptors) and dataclass field defaults.
    """
    if sample is not None:
        instance = sample(cls)
        if not isinstance(instance, cls):
            raise ConfigurationError(
                f"Sample for {cls.__name__} returned {type(instance).__name__} instance"
            )
        return own_properties(instance)

    props: dict[str, Any] = {}

    for name, value in vars(cls).items():
        if name.startswith("__") and name.endswith("__"):
            continue
        if callable(value) or _is_descriptor(value):
            continue
        props[name] = value

    if dataclasses.is_dataclass(cls):
        for f in dataclasses.fields(cls):
            if f.default is not dataclasses.MISSING:
                props[f.name] = f.default
            elif f.default_factory is not dataclasses.MISSING:
                props[f.name] = f.default_factory()

    return props


def annotated_properties(cls: type) -> dict[str, type]:
    """
    Get the classes of properties declared by type annotations of `cls` and its
    bases, such as dataclass fields without defaults.

    An optional annotation like `Shape | None` resolves to `Shape`. Primitives,
    generics, other unions and annotations which can't be evaluated are skipped.
    """
    try:
        hints = get_type_hints(cls)
    except (NameError, TypeError):
        # fall back to annotations already evaluated, skipping strings
        hints = {}
        for base in reversed(cls.__mro__):
            hints.update(inspect.get_annotations(base))

    props: dict[str, type] = {}
    for name, hint in hints.items():
        if (hint_cls := _annotation_class(hint)) is not None:
            props[name] = hint_cls

    return props


def check_codec(codec: Any, /):
    """
    Ensure the object implements the methods required of a codec.

    :raises ConfigurationError: If any required method is missing
    """
    missing = [m for m in CODEC_METHODS if not callable(getattr(codec, m, None))]
    if missing:
        raise ConfigurationError(
            "Invalid codec {!r}: must implement stringify, parse, and register "
            "(missing: {})".format(codec, ", ".join(missing))
        )


def _annotation_class(hint: Any) -> type | None:
    if get_origin(hint) in (Union, UnionType):
        args = [a for a in get_args(hint) if a is not NoneType]
        if len(args) != 1:
            return None
        hint = args[0]

    if not isinstance(hint, type) or isinstance(hint, GenericAlias):
        return None
    return None if issubclass(hint, PRIMITIVE_TYPES) else hint


def _is_descriptor(value: Any) -> bool:
    return isinstance(value, (classmethod, staticmethod, property)) or hasattr(
        type(value), "__get__"
    )
