"""
Codec parameters, optionally loaded from a TOML document via `tomlkit`.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Self

import tomlkit

from .exceptions import ConfigurationError

__all__ = [
    "DEFAULT_TYPE_KEY",
    "CodecParams",
    "load_params",
]

DEFAULT_TYPE_KEY = "_type"
"""
Reserved key under which the class tag is stored.
"""


@dataclass(kw_only=True, frozen=True)
class CodecParams:
    """
    Params fixed for a codec at creation.
    """

    type_key: str = DEFAULT_TYPE_KEY
    """
    Reserved key holding the tag of a registered class in its JSON object; must not
    be used as a property name of any class registered with the codec.
    """

    ensure_ascii: bool = False
    """
    Whether to escape non-ASCII characters in output.
    """

    sort_keys: bool = False
    """
    Whether to sort object keys in output, producing deterministic output.
    """

    allow_nan: bool = True
    """
    Whether to allow `NaN` and infinities, which are not strictly valid JSON.
    """

    def __post_init__(self):
        if not isinstance(self.type_key, str) or not self.type_key:
            raise ConfigurationError(
                f"type_key must be a non-empty string, got {self.type_key!r}"
            )
        for f in dataclasses.fields(self):
            if f.type == "bool" and not isinstance(getattr(self, f.name), bool):
                raise ConfigurationError(
                    f"{f.name} must be a bool, got {getattr(self, f.name)!r}"
                )

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any], /) -> Self:
        """
        Create params from a mapping, rejecting unknown keys.
        """
        names = {f.name for f in dataclasses.fields(cls)}
        if extra := sorted(set(values) - names):
            raise ConfigurationError(
                "Unknown codec params: {}; expected any of: {}".format(
                    ", ".join(extra), ", ".join(sorted(names))
                )
            )
        return cls(**dict(values))

    @classmethod
    def from_toml(cls, text: str, /, *, table: str = "classcodec") -> Self:
        """
        Create params from the given table of a TOML document; defaults are used
        if the table is absent.

        :param text: TOML document
        :param table: Dotted name of table, e.g. `"tool.classcodec"`
        """
        document = tomlkit.parse(text).unwrap()

        values: Any = document
        for name in table.split("."):
            if not isinstance(values, dict) or name not in values:
                return cls()
            values = values[name]

        if not isinstance(values, dict):
            raise ConfigurationError(
                f'Expected "{table}" to be a table, got {values!r}'
            )

        return cls.from_mapping(values)


def load_params(path: Path | str, /, *, table: str = "classcodec") -> CodecParams:
    """
    Load params from a TOML file, e.g. `pyproject.toml` with
    `table="tool.classcodec"`.
    """
    return CodecParams.from_toml(Path(path).read_text(), table=table)
