"""
Recursion state for encoding and decoding.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Self

from .descriptor import find_tagged_classes, get_descriptor
from .exceptions import CircularReferenceError, ConfigurationError
from .inspecting import is_object

if TYPE_CHECKING:
    from .codec import JSONCodec
    from .descriptor import Descriptor

__all__ = [
    "BaseFrame",
    "EncodeFrame",
    "DecodeFrame",
]


class BaseFrame:
    """
    Internal recursion state per frame.
    """

    codec: JSONCodec
    """
    Codec performing the traversal at this level.
    """

    descriptor: Descriptor | None
    """
    Descriptor of the registered class whose property is being processed, if any.
    Consulted for delegation of the object at this frame.
    """

    __path: tuple[str | int, ...]
    """
    Key path at this level in recursion.
    """

    def __init__(
        self,
        codec: JSONCodec,
        *,
        descriptor: Descriptor | None = None,
        path: tuple[str | int, ...] | None = None,
    ):
        self.codec = codec
        self.descriptor = descriptor
        self.__path = path or ()

    def __repr__(self) -> str:
        return "{}(codec={}, descriptor={}, path={})".format(
            type(self).__name__, self.codec, self.descriptor, self.path
        )

    @property
    def path(self) -> tuple[str | int, ...]:
        """
        The current path in the object tree.
        """
        return self.__path

    @property
    def key(self) -> str | int | None:
        """
        Key or index under which the object at this frame is held, `None` at root.
        """
        return self.__path[-1] if self.__path else None

    def find_delegate(
        self, *, cls: type | None = None, node: dict[str, Any] | None = None
    ) -> JSONCodec | None:
        """
        Get the codec which should process the object at this frame on behalf of the
        parent class, if other than this frame's codec.

        Property delegation takes precedence over class delegation, which takes
        precedence over the home codec of the object's class when that class is
        registered via `Codec()` but not with this frame's codec. The object's class
        is given by `cls` when encoding, or read from the tag of `node` when decoding.

        :raises ConfigurationError: If the object's class has several possible codecs
        """
        if self.descriptor is None:
            return None

        codec = None
        if isinstance(self.key, str):
            codec = self.descriptor.property_delegates.get(self.key)

        if codec is None:
            if cls is not None:
                codec = self.descriptor.class_delegates.get(cls)
            elif node is not None:
                codec = self.descriptor.find_class_delegate(node)

        if codec is None:
            codec = self.__find_home_codec(cls=cls, node=node)

        return codec if codec is not None and codec is not self.codec else None

    def __find_home_codec(
        self, *, cls: type | None, node: dict[str, Any] | None
    ) -> JSONCodec | None:
        """
        Get the home codec of a class this frame's codec doesn't know, for properties
        which couldn't be inspected at registration, e.g. assigned in `__init__`.
        """
        assert self.descriptor is not None

        if node is not None:
            tag = node.get(self.codec.params.type_key)
            if isinstance(tag, str) and tag in self.codec:
                return None
            classes = find_tagged_classes(node)
        elif cls is not None and cls not in self.codec:
            classes = [cls]
        else:
            return None

        descriptors = [d for c in classes if (d := get_descriptor(c)) is not None]
        if not descriptors:
            return None

        owner = f"{self.descriptor.cls.__name__}.{self.key}"
        if len(descriptors) > 1:
            raise ConfigurationError(
                "Property {} holds object matching multiple classes: {}. Must specify "
                "using delegate_prop({!r}, codec).".format(
                    owner, ", ".join(d.cls.__name__ for d in descriptors), self.key
                )
            )

        descriptor = descriptors[0]
        if len(descriptor.home_codecs) > 1:
            raise ConfigurationError(
                "Property {} has multiple possible codecs. Must specify using "
                "delegates_to({}, codec).".format(owner, descriptor.cls.__name__)
            )

        return descriptor.default_codec

    def _copy(
        self,
        *,
        codec: JSONCodec | None = None,
        descriptor: Descriptor | None = None,
        path_append: str | int | None = None,
    ) -> Self:
        """
        Create a new frame for a child object, with the parent descriptor replaced.
        """
        path = self.__path if path_append is None else (*self.__path, path_append)
        return type(self)(
            codec or self.codec,
            descriptor=descriptor,
            path=path,
            **self._shared_state(),
        )

    def _shared_state(self) -> dict[str, Any]:
        return {}


class EncodeFrame(BaseFrame):
    """
    Recursion state for encoding objects to a JSON-compatible tree.
    """

    _ancestors: set[int]
    """
    Ids of objects on the current path, for cycle detection.
    """

    def __init__(
        self,
        codec: JSONCodec,
        *,
        descriptor: Descriptor | None = None,
        path: tuple[str | int, ...] | None = None,
        ancestors: set[int] | None = None,
    ):
        super().__init__(codec, descriptor=descriptor, path=path)
        self._ancestors = ancestors if ancestors is not None else set()

    def process(self, obj: Any) -> Any:
        """
        Encode object at this frame, tracking it as an ancestor while its members are
        encoded.

        :raises CircularReferenceError: If the object is already on the current path
        """
        if not is_object(obj):
            return self.codec._encode(obj, self)

        if id(obj) in self._ancestors:
            raise CircularReferenceError(obj, self.path)

        self._ancestors.add(id(obj))
        try:
            return self.codec._encode(obj, self)
        finally:
            self._ancestors.remove(id(obj))

    def recurse(
        self,
        obj: Any,
        path_segment: str | int,
        /,
        *,
        descriptor: Descriptor | None = None,
    ) -> Any:
        """
        Create a new frame and encode the child object.
        """
        return self._copy(descriptor=descriptor, path_append=path_segment).process(obj)

    def delegate(self, codec: Any, obj: Any) -> Any:
        """
        Encode the object at this frame as a complete document of another codec,
        returning its structure.
        """
        from .codec import JSONCodec

        if isinstance(codec, JSONCodec):
            # share ancestors so cycles through delegation are detected
            return codec._encode(obj, self._copy(codec=codec))

        return json.loads(codec.stringify(obj))

    def _shared_state(self) -> dict[str, Any]:
        return {"ancestors": self._ancestors}


class DecodeFrame(BaseFrame):
    """
    Recursion state for decoding a parsed JSON tree.
    """

    def process(self, node: Any) -> Any:
        """
        Decode the node at this frame.
        """
        return self.codec._decode(node, self)

    def recurse(
        self,
        node: Any,
        path_segment: str | int,
        /,
        *,
        descriptor: Descriptor | None = None,
    ) -> Any:
        """
        Create a new frame and decode the child node.
        """
        return self._copy(descriptor=descriptor, path_append=path_segment).process(node)

    def delegate(self, codec: Any, node: Any) -> Any:
        """
        Decode the node at this frame as a complete document of another codec.
        """
        from .codec import JSONCodec

        if isinstance(codec, JSONCodec):
            return codec._decode(node, self._copy(codec=codec))

        return codec.parse(json.dumps(node))
