"""
Column serialization codec.

Columns listed in a record type's `serialization` configuration are encoded
on the way into the database and decoded on the way out. Formats:

- "none": stored as-is
- "json": structured text via the json module
- "pickle": opaque native bytes via pickle; only for rows this application
  wrote itself, since unpickling runs arbitrary code

Unknown format names raise ConfigurationError when a column using them is
actually encoded or decoded, not when the configuration is resolved.
"""

from __future__ import annotations

import json
import pickle
from typing import Any, Callable, Dict, Mapping, MutableMapping, Tuple

from rowstore.dao.configuration import (
    SERIALIZATION_JSON,
    SERIALIZATION_NONE,
    SERIALIZATION_PICKLE,
)
from rowstore.errors import ConfigurationError

Codec = Tuple[Callable[[Any], Any], Callable[[Any], Any]]


def _identity(value: Any) -> Any:
    return value


def _json_encode(value: Any) -> str:
    return json.dumps(value, sort_keys=True)


def _json_decode(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        value = bytes(value).decode("utf-8")
    return json.loads(value)


def _pickle_encode(value: Any) -> bytes:
    return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)


def _pickle_decode(value: Any) -> Any:
    if value is None:
        return None
    return pickle.loads(bytes(value))


_CODECS: Dict[str, Codec] = {
    SERIALIZATION_NONE: (_identity, _identity),
    SERIALIZATION_JSON: (_json_encode, _json_decode),
    SERIALIZATION_PICKLE: (_pickle_encode, _pickle_decode),
}


def codec_for(format_name: str) -> Codec:
    """Return the (encode, decode) pair for a format name."""
    try:
        return _CODECS[format_name]
    except KeyError:
        raise ConfigurationError(f"Unknown serialization format '{format_name}'.") from None


def encode_columns(data: MutableMapping[str, Any], serialization: Mapping[str, str]) -> None:
    """Encode, in place, every column of `data` that has a configured format."""
    for column, format_name in serialization.items():
        if column in data:
            encode, _ = codec_for(format_name)
            data[column] = encode(data[column])


def decode_columns(data: MutableMapping[str, Any], serialization: Mapping[str, str]) -> None:
    """Decode, in place, every column of `data` that has a configured format."""
    for column, format_name in serialization.items():
        if column in data:
            _, decode = codec_for(format_name)
            data[column] = decode(data[column])


__all__ = ["codec_for", "decode_columns", "encode_columns"]
