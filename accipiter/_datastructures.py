"""
Request data structures.

Provides:
- MultiDict: ordered multi-value mapping for query strings
- Headers: case-insensitive view over raw ASGI header pairs
- ParsedContentType: Content-Type media type and parameters
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, MutableMapping, Optional, Tuple, Union


# ============================================================================
# MultiDict
# ============================================================================

class MultiDict(MutableMapping[str, List[str]]):
    """
    Dictionary that keeps every value of a repeated key.

    ``get()`` returns the first value, ``get_all()`` all of them.
    """

    def __init__(self, items: Optional[Union[List[Tuple[str, str]], Mapping[str, Union[str, List[str]]]]] = None):
        self._data: Dict[str, List[str]] = {}

        if isinstance(items, Mapping):
            for key, value in items.items():
                self._data[key] = list(value) if isinstance(value, list) else [value]
        elif items:
            for key, value in items:
                self.add(key, value)

    def __getitem__(self, key: str) -> List[str]:
        return self._data[key]

    def __setitem__(self, key: str, value: Union[str, List[str]]) -> None:
        self._data[key] = value if isinstance(value, list) else [value]

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MultiDict({self._data})"

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """First value for ``key``."""
        values = self._data.get(key)
        return values[0] if values else default

    def get_all(self, key: str) -> List[str]:
        return list(self._data.get(key, ()))

    def add(self, key: str, value: str) -> None:
        self._data.setdefault(key, []).append(value)

    def to_dict(self, multi: bool = False) -> Dict[str, Union[str, List[str]]]:
        """
        Convert to a plain dict.

        Args:
            multi: Keep every value as a list instead of the first one only
        """
        if multi:
            return {k: list(v) for k, v in self._data.items()}
        return {k: v[0] for k, v in self._data.items() if v}


# ============================================================================
# Headers
# ============================================================================

@dataclass
class Headers:
    """
    Case-insensitive header access over raw ASGI ``(name, value)`` pairs.
    """

    raw: List[Tuple[bytes, bytes]] = field(default_factory=list)
    _index: Dict[str, List[str]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        self._index = {}
        for name, value in self.raw:
            self._index.setdefault(name.decode("latin-1").lower(), []).append(
                value.decode("latin-1")
            )

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self._index.get(name.lower())
        return values[0] if values else default

    def get_all(self, name: str) -> List[str]:
        return list(self._index.get(name.lower(), ()))

    def has(self, name: str) -> bool:
        return name.lower() in self._index

    def to_dict(self) -> Dict[str, str]:
        """Lower-cased names to values; repeated headers are comma-joined."""
        return {name: ", ".join(values) for name, values in self._index.items()}

    def items(self) -> Iterator[Tuple[str, str]]:
        for name, value in self.raw:
            yield name.decode("latin-1"), value.decode("latin-1")

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(f"Header '{name}' not found")
        return value

    def __len__(self) -> int:
        return len(self._index)


# ============================================================================
# Content-Type
# ============================================================================

@dataclass
class ParsedContentType:
    """Parsed Content-Type header (media type plus parameters)."""

    media_type: str
    params: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, content_type: Optional[str]) -> Optional["ParsedContentType"]:
        if not content_type:
            return None

        media_type, *parts = content_type.split(";")
        params = {}
        for part in parts:
            if "=" in part:
                key, value = part.split("=", 1)
                params[key.strip().lower()] = value.strip().strip('"')

        return cls(media_type=media_type.strip().lower(), params=params)

    @property
    def charset(self) -> str:
        return self.params.get("charset", "utf-8")

    @property
    def is_json(self) -> bool:
        """``application/json`` and ``+json`` suffixed types."""
        return self.media_type == "application/json" or self.media_type.endswith("+json")
