"""A single system (node) of the system forest, and its wire format."""

__all__ = ["System"]

import json
from dataclasses import dataclass
from typing import Any, Dict, Union

from .. import config
from .errors import FormatError

def _validate_sys_id(name: str, value: Any) -> None:
    # `bool` is an `int` subclass, but `True` is not a meaningful system ID.
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"System: `{name}` must be an int, got {type(value)} with value {value!r}")
    if not (0 <= value <= config.max_sys_id):
        raise ValueError(f"System: `{name}` must be in the range [0, {config.max_sys_id}], got {value}")

@dataclass(frozen=True)
class System:
    """One node of the forest: a system, its declared parent, and an opaque payload.

    `sys_id`: Unique ID of this system within the forest (unsigned 32-bit).
    `parent_sys_id`: ID of the parent system. If no system with that ID exists in the forest,
                     this system is a root, attached under a virtual anchor with that ID.
                     By convention, top-level systems use `0`.
    `usr_data`: Anything. Carried along, never interpreted. For the JSON wire format to round-trip,
                it needs to be JSON-able.

    Instances are immutable. To change a system, add a new `System` with the same `sys_id`
    to the `SystemTree`; this replaces the old one.

    A system that is its own parent can be constructed (so that it can be reported),
    but it is not valid, and `SystemTree` will not accept it.
    """
    sys_id: int
    parent_sys_id: int
    usr_data: Any = None

    def __post_init__(self):
        _validate_sys_id("sys_id", self.sys_id)
        _validate_sys_id("parent_sys_id", self.parent_sys_id)

    def is_valid(self) -> bool:
        """Return whether this system is valid, i.e. not its own parent. The payload is not checked."""
        return self.sys_id != self.parent_sys_id

    def is_equal_to(self, other: "System") -> bool:
        """Structural equality over all three fields. Same as `==`."""
        return self == other

    def describe(self) -> str:
        """Human-readable rendering, `{sys_id,parent_sys_id,usr_data}`. For diagnostics."""
        return f"{{{self.sys_id},{self.parent_sys_id},{self.usr_data}}}"

    def __str__(self) -> str:
        return self.describe()

    # --------------------------------------------------------------------------------
    # Wire format

    def to_dict(self) -> Dict[str, Any]:
        """Return the structured representation of this system, as used by the wire format."""
        return {"sys_id": self.sys_id,
                "parent_sys_id": self.parent_sys_id,
                "usr_data": self.usr_data}

    @classmethod
    def from_dict(cls, record: Any) -> "System":
        """Create a `System` from its structured representation (see `to_dict`).

        `sys_id` and `parent_sys_id` are mandatory. `usr_data` is optional, default `None`.
        Any other keys are ignored.

        Raises `FormatError` if `record` is not a valid system record.
        """
        if not isinstance(record, dict):
            raise FormatError(f"System.from_dict: expected a dict, got {type(record)}")
        for key in ("sys_id", "parent_sys_id"):
            if key not in record:
                raise FormatError(f"System.from_dict: missing mandatory field '{key}' in {record!r}")
        try:
            return cls(sys_id=record["sys_id"],
                       parent_sys_id=record["parent_sys_id"],
                       usr_data=record.get("usr_data", None))
        except (TypeError, ValueError) as exc:
            raise FormatError(f"System.from_dict: invalid system record {record!r}: {exc}") from exc

    def to_json(self) -> str:
        """Encode this system as JSON.

        Raises `TypeError` if the payload is not JSON-able.
        """
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "System":
        """Decode a system from JSON (`str` or `bytes`).

        Raises `FormatError` on malformed input.
        """
        try:
            record = json.loads(text)
        except (TypeError, ValueError) as exc:  # `json.JSONDecodeError` and `UnicodeDecodeError` are `ValueError`s
            raise FormatError(f"System.from_json: could not parse input as JSON: {exc}") from exc
        return cls.from_dict(record)
