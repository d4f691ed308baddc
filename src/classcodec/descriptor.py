"""
Per-class delegation descriptors and the builder which registers classes with
codecs.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, TypeVar, overload
from weakref import WeakKeyDictionary

from .exceptions import ConfigurationError
from .inspecting import (
    annotated_properties,
    check_codec,
    is_object,
    representative_properties,
)
from .params import DEFAULT_TYPE_KEY

if TYPE_CHECKING:
    from .codec import JSONCodec

__all__ = [
    "Descriptor",
    "CodecBuilder",
    "Codec",
    "get_descriptor",
    "find_tagged_classes",
    "default_tag",
]

logger = logging.getLogger(__name__)

ClassT = TypeVar("ClassT", bound=type)

_descriptors: WeakKeyDictionary[type, Descriptor] = WeakKeyDictionary()
"""
Side table of descriptors keyed by class identity.
"""


def get_descriptor(cls: type, /) -> Descriptor | None:
    """
    Get descriptor of class registered via `Codec()`, if any. Descriptors are not
    inherited by subclasses.
    """
    return _descriptors.get(cls)


def default_tag(cls: type, /) -> str:
    """
    Get the tag of a class: from its descriptor if registered via `Codec()`,
    otherwise its name.
    """
    descriptor = _descriptors.get(cls)
    return descriptor.tag if descriptor else cls.__name__


def find_tagged_classes(node: dict[str, Any], /) -> list[type]:
    """
    Get classes registered via `Codec()` whose tag the serialized object carries
    under the type key of one of their home codecs.
    """
    return [
        cls
        for cls, descriptor in list(_descriptors.items())
        if any(
            node.get(_type_key(codec)) == _codec_tag(codec, cls)
            for codec in descriptor.home_codecs
        )
    ]


def _type_key(codec: Any) -> str:
    # duck-typed codecs are assumed to use the default
    params = getattr(codec, "params", None)
    return getattr(params, "type_key", DEFAULT_TYPE_KEY)


def _codec_tag(codec: Any, cls: type) -> str:
    get_tag = getattr(codec, "get_tag", None)
    return (get_tag(cls) if get_tag else None) or default_tag(cls)


class Descriptor:
    """
    Delegation configuration of a registered class: its home codecs and which
    codecs its properties and referenced classes are routed to.
    """

    cls: type
    """
    The registered class.
    """

    tag: str
    """
    Tag identifying the class in serialized output.
    """

    home_codecs: tuple[JSONCodec, ...]
    """
    Codecs with which the class is registered; the first is its default codec.
    """

    __class_delegates: dict[type, JSONCodec]
    __property_delegates: dict[str, JSONCodec]

    def __init__(
        self,
        cls: type,
        tag: str,
        home_codecs: tuple[JSONCodec, ...],
        class_delegates: dict[type, JSONCodec],
        property_delegates: dict[str, JSONCodec],
    ):
        assert home_codecs
        self.cls = cls
        self.tag = tag
        self.home_codecs = home_codecs
        self.__class_delegates = class_delegates
        self.__property_delegates = property_delegates

    def __repr__(self) -> str:
        return "Descriptor(cls={}, tag={!r}, home_codecs={})".format(
            self.cls.__name__, self.tag, self.home_codecs
        )

    @property
    def default_codec(self) -> JSONCodec:
        return self.home_codecs[0]

    @property
    def class_delegates(self) -> MappingProxyType[type, JSONCodec]:
        """
        Mapping of referenced classes to the codecs which process their instances.
        """
        return MappingProxyType(self.__class_delegates)

    @property
    def property_delegates(self) -> MappingProxyType[str, JSONCodec]:
        """
        Mapping of property names to the codecs which process their values, explicit
        or inferred at registration.
        """
        return MappingProxyType(self.__property_delegates)

    def find_class_delegate(self, node: dict[str, Any]) -> JSONCodec | None:
        """
        Get the codec to which the class of a serialized object is delegated, if any.
        The object's tag is looked up under each delegate codec's own type key.
        """
        for cls, codec in self.__class_delegates.items():
            if node.get(_type_key(codec)) == _codec_tag(codec, cls):
                return codec
        return None


class CodecBuilder:
    """
    Collects delegation overrides for a class, then registers it with its home
    codecs.

    Use via `Codec()`:

    ```python
    @Codec(main_codec).delegates_to(Shape, shape_codec).register
    class Drawing:
        ...
    ```
    """

    __codecs: tuple[JSONCodec, ...]
    __tag: str | None
    __class_delegates: dict[type, JSONCodec]
    __property_delegates: dict[str, JSONCodec]

    __descriptor: Descriptor | None = None
    """
    Descriptor created upon registration.
    """

    def __init__(
        self, codecs: JSONCodec | Sequence[JSONCodec], /, *, tag: str | None = None
    ):
        codecs_ = (
            tuple(codecs)
            if isinstance(codecs, Sequence) and not isinstance(codecs, str)
            else (codecs,)
        )
        if not codecs_:
            raise ConfigurationError("At least one codec is required")
        for codec in codecs_:
            check_codec(codec)

        self.__codecs = codecs_
        self.__tag = tag
        self.__class_delegates = {}
        self.__property_delegates = {}

    def __repr__(self) -> str:
        return f"CodecBuilder(codecs={self.__codecs}, descriptor={self.__descriptor})"

    @property
    def descriptor(self) -> Descriptor | None:
        """
        Descriptor of the registered class, `None` before registration.
        """
        return self.__descriptor

    def delegate_prop(self, name: str, codec: JSONCodec, /) -> CodecBuilder:
        """
        Route the value of the given property to `codec`.
        """
        self.__check_open()
        check_codec(codec)
        self.__property_delegates[name] = codec
        return self

    def delegates_to(self, cls: type, codec: JSONCodec, /) -> CodecBuilder:
        """
        Route instances of `cls` held by properties to `codec`; required for classes
        registered with more than one codec.
        """
        self.__check_open()
        check_codec(codec)
        if not isinstance(cls, type):
            raise ConfigurationError(f"Expected a class, got {cls!r}")
        self.__class_delegates[cls] = codec
        return self

    @overload
    def register(
        self, *, sample: Callable[[type], Any] | None = None
    ) -> Callable[[ClassT], ClassT]: ...

    @overload
    def register(
        self, cls: ClassT, /, *, sample: Callable[[type], Any] | None = None
    ) -> ClassT: ...

    def register(
        self,
        cls: ClassT | None = None,
        /,
        *,
        sample: Callable[[type], Any] | None = None,
    ) -> ClassT | Callable[[ClassT], ClassT]:
        """
        Infer property delegates and register the class with its home codecs. Can be
        used as a class decorator, with or without arguments.

        :param cls: Class to register
        :param sample: Function taking the class and returning a representative \
        instance whose properties are inspected; if `None`, class attributes and \
        dataclass defaults are inspected. Annotated properties are inspected either \
        way
        :raises ConfigurationError: If a property's class is registered with more \
        than one codec and not explicitly delegated, or a property collides with a \
        codec's type key
        """

        def register(cls: ClassT) -> ClassT:
            self.__finalize(cls, sample)
            return cls

        return register if cls is None else register(cls)

    def __finalize(self, cls: type, sample: Callable[[type], Any] | None):
        self.__check_open()
        if not isinstance(cls, type):
            raise ConfigurationError(f"Expected a class, got {cls!r}")
        if (existing := _descriptors.get(cls)) is not None:
            raise ConfigurationError(
                f"Class {cls.__name__} already registered via Codec() with "
                f"{existing.home_codecs}"
            )

        values = representative_properties(cls, sample)
        hints = annotated_properties(cls)
        self.__check_type_keys(cls, values.keys() | hints.keys())

        # class of each property holding an object, preferring actual values
        prop_classes = hints | {n: type(v) for n, v in values.items() if is_object(v)}

        # resolve codec for each property holding an object
        for name, value_cls in prop_classes.items():
            if name in self.__property_delegates:
                continue

            value_descriptor = get_descriptor(value_cls)

            if value_cls in self.__class_delegates:
                # use explicitly delegated codec for this class
                codec = self.__class_delegates[value_cls]
            elif value_descriptor and len(value_descriptor.home_codecs) == 1:
                # auto-delegate to single codec
                codec = value_descriptor.default_codec
            elif value_descriptor:
                raise ConfigurationError(
                    "Property {}.{} has multiple possible codecs. Must specify using "
                    "delegates_to({}, codec).".format(
                        cls.__name__, name, value_cls.__name__
                    )
                )
            else:
                # unregistered: falls through to default handling
                continue

            logger.debug(f"Delegating {cls.__name__}.{name} to {codec}")
            self.__property_delegates[name] = codec

        descriptor = Descriptor(
            cls,
            self.__tag or cls.__name__,
            self.__codecs,
            self.__class_delegates,
            self.__property_delegates,
        )
        _descriptors[cls] = descriptor
        self.__descriptor = descriptor

        for codec in self.__codecs:
            codec.register(cls)

        logger.debug(f"Registered {descriptor}")

    def __check_open(self):
        if self.__descriptor is not None:
            raise ConfigurationError(
                f"Class {self.__descriptor.cls.__name__} already registered; cannot "
                "modify its delegation"
            )

    def __check_type_keys(self, cls: type, names: set[str]):
        for codec in self.__codecs:
            params = getattr(codec, "params", None)
            type_key = getattr(params, "type_key", None)
            if type_key is not None and type_key in names:
                raise ConfigurationError(
                    f'Property {cls.__name__}.{type_key} collides with the type key '
                    f"of {codec}"
                )


def Codec(
    codecs: JSONCodec | Sequence[JSONCodec], /, *, tag: str | None = None
) -> CodecBuilder:
    """
    Start registration of a class with one or more codecs; the first is the default
    codec of the class.

    :param codecs: Codec or sequence of codecs to register the class with
    :param tag: Tag identifying the class in output, defaults to its name
    :raises ConfigurationError: If any codec lacks `stringify`, `parse`, or \
    `register`
    """
    return CodecBuilder(codecs, tag=tag)
