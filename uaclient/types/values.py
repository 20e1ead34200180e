"""
OPC UA value decoding.

OPC UA nodes are heterogeneously typed. Values read from a server are
decoded into a TypedValue, a tagged union over the scalar kinds the
HTTP payload can carry, and only ever leave the system through
TypedValue.to_wire().
"""

import base64
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Union

from asyncua import ua


class ValueKind(Enum):
    """Type tag of a decoded node value."""
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    TIMESTAMP = "timestamp"
    OPAQUE = "opaque"


# Python payload type accepted for each kind
_PAYLOAD_TYPES: Dict[ValueKind, tuple] = {
    ValueKind.BOOLEAN: (bool,),
    ValueKind.INTEGER: (int,),
    ValueKind.FLOAT: (float, int),
    ValueKind.STRING: (str,),
    ValueKind.TIMESTAMP: (datetime,),
    ValueKind.OPAQUE: (bytes, bytearray),
}


@dataclass(frozen=True)
class TypedValue:
    """
    A decoded OPC UA value together with its type tag.

    Attributes:
        kind: Value kind
        value: Python payload matching the kind
    """
    kind: ValueKind
    value: Union[bool, int, float, str, datetime, bytes]

    def __post_init__(self):
        expected = _PAYLOAD_TYPES[self.kind]
        if not isinstance(self.value, expected):
            raise ValueError(f"{type(self.value).__name__} payload for {self.kind.value} value")
        # bool is an int subclass
        if self.kind in (ValueKind.INTEGER, ValueKind.FLOAT) and isinstance(self.value, bool):
            raise ValueError(f"bool payload for {self.kind.value} value")

    def to_wire(self) -> Any:
        """Convert the payload to its JSON representation."""
        if self.kind == ValueKind.TIMESTAMP:
            stamp = self.value
            if stamp.tzinfo is None:
                stamp = stamp.replace(tzinfo=timezone.utc)
            return stamp.isoformat()
        if self.kind == ValueKind.OPAQUE:
            return base64.b64encode(bytes(self.value)).decode("ascii")
        if self.kind == ValueKind.FLOAT:
            return float(self.value)
        return self.value

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "value": self.to_wire()}


class ValueConverter:
    """
    Converts asyncua Variants into TypedValues.

    Only scalar values are decoded. Null values, arrays and structured
    types raise ValueError.
    """

    VARIANT_TO_KIND: Dict[ua.VariantType, ValueKind] = {
        ua.VariantType.Boolean: ValueKind.BOOLEAN,

        ua.VariantType.SByte: ValueKind.INTEGER,
        ua.VariantType.Byte: ValueKind.INTEGER,
        ua.VariantType.Int16: ValueKind.INTEGER,
        ua.VariantType.UInt16: ValueKind.INTEGER,
        ua.VariantType.Int32: ValueKind.INTEGER,
        ua.VariantType.UInt32: ValueKind.INTEGER,
        ua.VariantType.Int64: ValueKind.INTEGER,
        ua.VariantType.UInt64: ValueKind.INTEGER,
        ua.VariantType.StatusCode: ValueKind.INTEGER,

        ua.VariantType.Float: ValueKind.FLOAT,
        ua.VariantType.Double: ValueKind.FLOAT,

        ua.VariantType.String: ValueKind.STRING,
        ua.VariantType.LocalizedText: ValueKind.STRING,
        ua.VariantType.QualifiedName: ValueKind.STRING,
        ua.VariantType.NodeId: ValueKind.STRING,
        ua.VariantType.ExpandedNodeId: ValueKind.STRING,
        ua.VariantType.Guid: ValueKind.STRING,

        ua.VariantType.DateTime: ValueKind.TIMESTAMP,

        ua.VariantType.ByteString: ValueKind.OPAQUE,
    }

    @classmethod
    def from_variant(cls, variant: ua.Variant) -> TypedValue:
        """
        Decode an asyncua Variant.

        Args:
            variant: Variant taken from a DataValue

        Returns:
            The decoded value

        Raises:
            ValueError: If the value cannot be represented as a TypedValue
        """
        if variant is None or variant.VariantType == ua.VariantType.Null or variant.Value is None:
            raise ValueError("node has no value")
        if variant.is_array or isinstance(variant.Value, (list, tuple)):
            raise ValueError("array values are not supported")

        kind = cls.VARIANT_TO_KIND.get(variant.VariantType)
        if kind is None:
            if isinstance(variant.Value, (bytes, bytearray)):
                return TypedValue(ValueKind.OPAQUE, bytes(variant.Value))
            raise ValueError(f"unsupported variant type {variant.VariantType.name}")

        return TypedValue(kind, cls._payload(variant.VariantType, variant.Value))

    @classmethod
    def _payload(cls, variant_type: ua.VariantType, value: Any) -> Any:
        if variant_type == ua.VariantType.LocalizedText:
            return value.Text or ""
        if variant_type in (ua.VariantType.QualifiedName, ua.VariantType.NodeId,
                            ua.VariantType.ExpandedNodeId):
            return value.to_string()
        if variant_type == ua.VariantType.Guid:
            return str(value)
        if variant_type == ua.VariantType.StatusCode:
            return int(value.value)
        if variant_type in (ua.VariantType.Float, ua.VariantType.Double):
            return float(value)
        return value
