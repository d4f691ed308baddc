"""
Class-aware JSON serialization with per-class delegation between codecs.
"""

from ._types import OMIT, ReplacerType, ReviverType
from .codec import JSONCodec
from .descriptor import Codec, CodecBuilder, Descriptor, get_descriptor
from .exceptions import (
    CircularReferenceError,
    CodecError,
    ConfigurationError,
    UnknownTypeError,
)
from .params import CodecParams, load_params

__all__ = [
    "OMIT",
    "ReplacerType",
    "ReviverType",
    "JSONCodec",
    "Codec",
    "CodecBuilder",
    "Descriptor",
    "get_descriptor",
    "CodecError",
    "ConfigurationError",
    "CircularReferenceError",
    "UnknownTypeError",
    "CodecParams",
    "load_params",
]
