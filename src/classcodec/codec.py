"""
Codec which maps registered classes to/from tagged JSON objects.
"""

from __future__ import annotations

import json
import logging
from types import MappingProxyType
from typing import Any

from ._types import OMIT, ReplacerType, ReviverType
from .descriptor import default_tag, get_descriptor
from .exceptions import ConfigurationError, UnknownTypeError
from .frames import DecodeFrame, EncodeFrame
from .inspecting import has_properties, is_object, own_properties
from .params import CodecParams

__all__ = [
    "JSONCodec",
]

logger = logging.getLogger(__name__)

MAX_INDENT = 10
"""
Maximum indentation, in spaces or characters, as in standard JSON formatting.
"""


class JSONCodec:
    """
    Namespace of classes identified by tag, serialized to and reconstructed from
    JSON text.

    Classes are typically registered via `Codec()`, which also configures their
    delegation to other codecs.
    """

    name: str | None
    """
    Optional name used in representation.
    """

    params: CodecParams
    """
    Params fixed at creation.
    """

    __classes: dict[str, type]
    """
    Mapping of tags to classes.
    """

    __tags: dict[type, str]
    """
    Reverse mapping of classes to tags.
    """

    def __init__(self, name: str | None = None, *, params: CodecParams | None = None):
        self.name = name
        self.params = params or CodecParams()
        self.__classes = {}
        self.__tags = {}

    def __repr__(self) -> str:
        label = repr(self.name) if self.name is not None else hex(id(self))
        return f"JSONCodec({label})"

    def __contains__(self, item: Any) -> bool:
        """
        Whether a class or tag is registered with this codec.
        """
        if isinstance(item, str):
            return item in self.__classes
        return item in self.__tags

    @property
    def tag_map(self) -> MappingProxyType[str, type]:
        """
        Get mapping of tags to classes currently registered.
        """
        return MappingProxyType(self.__classes)

    def get_class(self, tag: str, /) -> type | None:
        return self.__classes.get(tag)

    def get_tag(self, cls: type, /) -> str | None:
        return self.__tags.get(cls)

    def register(self, cls: type, /, *, tag: str | None = None) -> JSONCodec:
        """
        Register a class under its tag: the given one, else the one set via `Codec()`,
        else its name.

        A different class already registered under the same tag is replaced.
        """
        if not isinstance(cls, type):
            raise ConfigurationError(f"Expected a class, got {cls!r}")

        tag_ = tag or default_tag(cls)
        existing = self.__classes.get(tag_)

        if existing is cls:
            return self
        if existing is not None:
            logger.warning(f'Tag "{tag_}" of {existing} overwritten by {cls} in {self}')
            del self.__tags[existing]
        if (old_tag := self.__tags.get(cls)) is not None:
            del self.__classes[old_tag]

        self.__classes[tag_] = cls
        self.__tags[cls] = tag_
        logger.debug(f'Registered {cls} as "{tag_}" in {self}')

        return self

    def stringify(
        self,
        value: Any,
        replacer: ReplacerType | None = None,
        space: int | str | None = None,
    ) -> str:
        """
        Serialize value to JSON text, tagging instances of registered classes.

        :param value: Object to serialize
        :param replacer: Function transforming each key/value of the resolved tree \
        top-down, or list of object keys to keep; type tags are kept either way
        :param space: Number of spaces or string to indent with, compact if `None`
        :raises CircularReferenceError: If an object is contained by itself
        :raises ConfigurationError: If a tagged instance has a property named like \
        the type key
        """
        tree = self.encode(value)

        if replacer is not None:
            tree = _apply_replacer(tree, replacer, self.params.type_key)

        indent = _normalize_space(space)

        return json.dumps(
            tree,
            indent=indent,
            separators=(",", ":") if indent is None else (",", ": "),
            ensure_ascii=self.params.ensure_ascii,
            sort_keys=self.params.sort_keys,
            allow_nan=self.params.allow_nan,
        )

    def parse(self, text: str | bytes, reviver: ReviverType | None = None) -> Any:
        """
        Parse JSON text, reconstructing instances of registered classes.

        :param text: JSON text
        :param reviver: Function transforming each key/value of the reconstructed \
        tree bottom-up
        :raises UnknownTypeError: If a tag is not registered with the resolving codec
        """
        value = self.decode(json.loads(text))

        if reviver is not None:
            value = _apply_reviver(value, reviver)

        return value

    def encode(self, value: Any) -> Any:
        """
        Encode value to a tree of JSON-compatible objects.
        """
        return EncodeFrame(self).process(value)

    def decode(self, tree: Any) -> Any:
        """
        Decode a tree of JSON-compatible objects.
        """
        return DecodeFrame(self).process(tree)

    def _encode(self, obj: Any, frame: EncodeFrame) -> Any:
        if not is_object(obj):
            return obj

        if (codec := frame.find_delegate(cls=type(obj))) is not None:
            return frame.delegate(codec, obj)

        if isinstance(obj, (list, tuple)):
            return [frame.recurse(o, i) for i, o in enumerate(obj)]

        if isinstance(obj, dict):
            return {k: frame.recurse(v, k) for k, v in obj.items()}

        if (tag := self.__tags.get(type(obj))) is not None:
            return self.__encode_instance(obj, tag, frame)

        # equivalent of toJSON(): replace with the object's own representation
        hook = getattr(obj, "__json__", None)
        if callable(hook) and not isinstance(obj, type):
            return self._encode(hook(), frame)

        if has_properties(obj) and not isinstance(obj, type):
            return {k: frame.recurse(v, k) for k, v in own_properties(obj).items()}

        # leave for json to serialize or reject
        return obj

    def _decode(self, node: Any, frame: DecodeFrame) -> Any:
        if not isinstance(node, (dict, list)):
            return node

        # property delegation is checked before the tag
        codec = frame.find_delegate(node=node if isinstance(node, dict) else None)
        if codec is not None:
            return frame.delegate(codec, node)

        if isinstance(node, list):
            return [frame.recurse(n, i) for i, n in enumerate(node)]

        type_key = self.params.type_key
        if type_key not in node:
            return {k: frame.recurse(v, k) for k, v in node.items()}

        tag = node[type_key]
        cls = self.__classes.get(tag) if isinstance(tag, str) else None
        if cls is None:
            raise UnknownTypeError(tag, frame.path)

        instance = cls.__new__(cls)
        descriptor = get_descriptor(cls)
        props = {
            k: frame.recurse(v, k, descriptor=descriptor)
            for k, v in node.items()
            if k != type_key
        }

        # bypass __setattr__ overrides and frozen dataclasses
        for name, value in props.items():
            object.__setattr__(instance, name, value)

        return instance

    def __encode_instance(self, obj: Any, tag: str, frame: EncodeFrame) -> Any:
        type_key = self.params.type_key
        props = own_properties(obj)

        if type_key in props:
            raise ConfigurationError(
                f"Property {type(obj).__name__}.{type_key} collides with the type key "
                f"of {self}"
            )

        descriptor = get_descriptor(type(obj))
        encoded: dict[str, Any] = {type_key: tag}
        for name, value in props.items():
            encoded[name] = frame.recurse(value, name, descriptor=descriptor)

        return encoded


def _normalize_space(space: int | str | None) -> int | str | None:
    """
    Get indent for `json.dumps()` with standard JSON semantics: clamped to 10 spaces
    or characters, with `None` for compact output.
    """
    if space is None:
        return None
    if isinstance(space, bool) or not isinstance(space, (int, str)):
        raise TypeError(f"space must be an int or str, got {space!r}")
    if isinstance(space, int):
        return min(space, MAX_INDENT) if space >= 1 else None
    return space[:MAX_INDENT] or None


def _apply_replacer(tree: Any, replacer: ReplacerType, type_key: str) -> Any:
    """
    Apply replacer to the encoded tree; tags of tagged objects are kept as-is.
    """

    def is_tag(node: dict[str, Any], key: str) -> bool:
        return key == type_key and isinstance(node[key], str)

    if isinstance(replacer, list):
        keys = set(replacer)

        def select(node: Any) -> Any:
            if isinstance(node, dict):
                return {
                    k: select(v)
                    for k, v in node.items()
                    if k in keys or is_tag(node, k)
                }
            if isinstance(node, list):
                return [select(n) for n in node]
            return node

        return select(tree)

    def replace(key: str | int, value: Any) -> Any:
        value = replacer(key, value)

        if isinstance(value, dict):
            replaced = {}
            for k, v in value.items():
                v_ = v if is_tag(value, k) else replace(k, v)
                if v_ is not OMIT:
                    replaced[k] = v_
            return replaced

        if isinstance(value, list):
            replaced_list = []
            for i, v in enumerate(value):
                v_ = replace(i, v)
                replaced_list.append(None if v_ is OMIT else v_)
            return replaced_list

        return value

    result = replace("", tree)
    return None if result is OMIT else result


def _apply_reviver(value: Any, reviver: ReviverType, key: str | int = "") -> Any:
    if isinstance(value, dict):
        for k in list(value):
            v = _apply_reviver(value[k], reviver, k)
            if v is OMIT:
                del value[k]
            else:
                value[k] = v

    elif isinstance(value, list):
        for i, v in enumerate(value):
            v = _apply_reviver(v, reviver, i)
            value[i] = None if v is OMIT else v

    elif is_object(value) and has_properties(value):
        # reconstructed instance
        for k, v in own_properties(value).items():
            v_ = _apply_reviver(v, reviver, k)
            if v_ is OMIT:
                object.__delattr__(value, k)
            elif v_ is not v:
                object.__setattr__(value, k, v_)

    return reviver(key, value)
