"""Tagged key-value runtime values (the runtime counterpart of a Tagged pattern)."""

from collections.abc import Mapping
from typing import Any, Dict, Iterator, Optional

# Key that marks a JSON object as a tagged record on the wire
WIRE_TAG_KEY = "$tag"


class Record(Mapping):
    """Immutable mapping that also carries a type tag, e.g. Record("User", age=48, name="John")."""

    __slots__ = ("_tag", "_fields")

    def __init__(self, tag: str, fields: Optional[Dict[str, Any]] = None, **kwargs: Any) -> None:
        self._tag = tag
        data = dict(fields or {})
        data.update(kwargs)
        self._fields = data

    @property
    def tag(self) -> str:
        return self._tag

    def __getitem__(self, key: str) -> Any:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self._tag == other._tag and self._fields == other._fields

    def __hash__(self) -> int:
        return hash((self._tag, tuple(sorted(self._fields))))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for transport; the tag travels under WIRE_TAG_KEY."""
        out: Dict[str, Any] = {WIRE_TAG_KEY: self._tag}
        for key, value in self._fields.items():
            out[key] = to_wire(value)
        return out

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self._fields.items())
        return f"Record({self._tag!r}, {fields})" if fields else f"Record({self._tag!r})"


def from_wire(value: Any) -> Any:
    """Decode a JSON value; objects carrying WIRE_TAG_KEY become Records."""
    if isinstance(value, dict):
        decoded = {k: from_wire(v) for k, v in value.items() if k != WIRE_TAG_KEY}
        tag = value.get(WIRE_TAG_KEY)
        if isinstance(tag, str):
            return Record(tag, decoded)
        return decoded
    if isinstance(value, list):
        return [from_wire(v) for v in value]
    return value


def to_wire(value: Any) -> Any:
    """Encode a runtime value as JSON-serializable data (tuples become lists)."""
    if isinstance(value, Record):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {str(k): to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire(v) for v in value]
    return value
