import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from asyncua import ua

from uaclient.errors import ConfigError
from uaclient.types import (
    NodeDescriptor,
    NodeReading,
    ResourceConfig,
    TypedValue,
    ValueConverter,
    ValueKind,
)
from uaclient.types.models import check_unique_names

ENDPOINT = "opc.tcp://10.0.0.17:53530/OPCUA/SimulationServer"


def _block(**overrides):
    block = {
        "name": "PLC1",
        "details": {"Location": ["Line 1"]},
        "server_address": ENDPOINT,
        "node_list": {
            "Node_Id": ["ns=3;i=1002", "ns=3;i=1003"],
            "Browse_Name": ["Counter", "Random"],
            "Ref_Type": ["HasComponent", "HasComponent"],
        },
    }
    block.update(overrides)
    return block


class TestResourceConfig:
    def test_parallel_node_lists(self):
        config = ResourceConfig.from_dict(_block())
        assert config.name == "PLC1"
        assert config.server_address == ENDPOINT
        assert config.details == {"Location": ["Line 1"]}
        assert config.nodes == [
            NodeDescriptor("ns=3;i=1002", "Counter", "HasComponent"),
            NodeDescriptor("ns=3;i=1003", "Random", "HasComponent"),
        ]

    def test_structured_node_list(self):
        config = ResourceConfig.from_dict(_block(node_list=[
            {"node_id": "ns=2;s=Label", "browse_name": "Label"},
            {"node_id": "ns=2;i=3"},
        ]))
        assert [n.label for n in config.nodes] == ["Label", "ns=2;i=3"]

    def test_browse_names_optional(self):
        config = ResourceConfig.from_dict(_block(node_list={"Node_Id": ["ns=2;i=3"]}))
        assert config.nodes == [NodeDescriptor("ns=2;i=3")]

    def test_missing_node_list_means_no_nodes(self):
        block = _block()
        del block["node_list"]
        assert ResourceConfig.from_dict(block).nodes == []

    def test_camel_case_keys(self):
        block = _block()
        block["serverAddress"] = block.pop("server_address")
        block["nodeList"] = block.pop("node_list")
        config = ResourceConfig.from_dict(block)
        assert config.server_address == ENDPOINT
        assert len(config.nodes) == 2

    def test_mismatched_list_lengths(self):
        with pytest.raises(ConfigError, match="Browse_Name"):
            ResourceConfig.from_dict(_block(node_list={
                "Node_Id": ["ns=2;i=3", "ns=2;i=4"],
                "Browse_Name": ["Temperature"],
            }))

    def test_empty_node_id(self):
        with pytest.raises(ConfigError, match="empty node_id"):
            ResourceConfig.from_dict(_block(node_list={"Node_Id": ["ns=2;i=3", "  "]}))

    @pytest.mark.parametrize("name", ["", "   ", None, "a/b"])
    def test_invalid_name(self, name):
        with pytest.raises(ConfigError):
            ResourceConfig.from_dict(_block(name=name))

    def test_missing_server_address(self):
        block = _block()
        del block["server_address"]
        with pytest.raises(ConfigError, match="server_address"):
            ResourceConfig.from_dict(block)

    @pytest.mark.parametrize("address", ["http://10.0.0.17:53530", "opc.tcp://", "opc.tcp://host:notaport", 42])
    def test_invalid_server_address(self, address):
        with pytest.raises(ConfigError):
            ResourceConfig.from_dict(_block(server_address=address))

    def test_listening_address_is_normalized(self):
        config = ResourceConfig.from_dict(_block(server_address=" opc.tcp://0.0.0.0:4840/freeopcua/server/ "))
        assert config.server_address == "opc.tcp://localhost:4840/freeopcua/server/"

    def test_details_must_be_string_lists(self):
        with pytest.raises(ConfigError, match="details"):
            ResourceConfig.from_dict(_block(details={"Location": [1, 2]}))

    def test_from_json(self):
        config = ResourceConfig.from_json(json.dumps(_block()).encode())
        assert config.name == "PLC1"

    def test_from_json_invalid(self):
        with pytest.raises(ConfigError, match="Invalid JSON"):
            ResourceConfig.from_json(b"{not json")

    def test_from_json_not_an_object(self):
        with pytest.raises(ConfigError):
            ResourceConfig.from_json(b"[1, 2]")

    def test_find_node(self):
        config = ResourceConfig.from_dict(_block())
        assert config.find_node("ns=3;i=1003").browse_name == "Random"
        assert config.find_node("ns=3;i=9") is None


def test_check_unique_names():
    first = ResourceConfig.from_dict(_block())
    other = ResourceConfig.from_dict(_block(name="PLC2"))
    check_unique_names([first, other])

    with pytest.raises(ConfigError, match="Duplicate unit asset name 'PLC1'"):
        check_unique_names([first, other, ResourceConfig.from_dict(_block())])


class TestValueConverter:
    @pytest.mark.parametrize("variant,kind,expected", [
        (ua.Variant(True, ua.VariantType.Boolean), ValueKind.BOOLEAN, True),
        (ua.Variant(-5, ua.VariantType.SByte), ValueKind.INTEGER, -5),
        (ua.Variant(2 ** 40, ua.VariantType.UInt64), ValueKind.INTEGER, 2 ** 40),
        (ua.Variant(1.5, ua.VariantType.Float), ValueKind.FLOAT, 1.5),
        (ua.Variant("text", ua.VariantType.String), ValueKind.STRING, "text"),
        (ua.Variant(ua.LocalizedText(Text="Hallo", Locale="de"), ua.VariantType.LocalizedText),
         ValueKind.STRING, "Hallo"),
        (ua.Variant(ua.NodeId(3, 2), ua.VariantType.NodeId), ValueKind.STRING, "ns=2;i=3"),
        (ua.Variant(b"\x00\x01", ua.VariantType.ByteString), ValueKind.OPAQUE, b"\x00\x01"),
    ])
    def test_scalar_kinds(self, variant, kind, expected):
        value = ValueConverter.from_variant(variant)
        assert value.kind == kind
        assert value.value == expected

    def test_timestamp(self):
        stamp = datetime(2024, 1, 1, 8, 30, tzinfo=timezone.utc)
        value = ValueConverter.from_variant(ua.Variant(stamp, ua.VariantType.DateTime))
        assert value == TypedValue(ValueKind.TIMESTAMP, stamp)

    def test_array_rejected(self):
        with pytest.raises(ValueError, match="array"):
            ValueConverter.from_variant(ua.Variant([1, 2, 3], ua.VariantType.Int32))

    def test_null_rejected(self):
        with pytest.raises(ValueError, match="no value"):
            ValueConverter.from_variant(ua.Variant())

    def test_none_rejected(self):
        with pytest.raises(ValueError):
            ValueConverter.from_variant(None)


class TestTypedValue:
    def test_naive_timestamp_is_utc_on_the_wire(self):
        value = TypedValue(ValueKind.TIMESTAMP, datetime(2024, 1, 1, 8, 30))
        assert value.to_wire() == "2024-01-01T08:30:00+00:00"

    def test_aware_timestamp_keeps_offset(self):
        stamp = datetime(2024, 1, 1, 9, 30, tzinfo=timezone(timedelta(hours=1)))
        assert TypedValue(ValueKind.TIMESTAMP, stamp).to_wire() == "2024-01-01T09:30:00+01:00"

    def test_opaque_is_base64(self):
        value = TypedValue(ValueKind.OPAQUE, b"\xde\xad\xbe\xef")
        assert value.to_wire() == base64.b64encode(b"\xde\xad\xbe\xef").decode()

    def test_float_accepts_int_payload(self):
        value = TypedValue(ValueKind.FLOAT, 3)
        assert value.to_wire() == 3.0
        assert isinstance(value.to_wire(), float)

    @pytest.mark.parametrize("kind,payload", [
        (ValueKind.INTEGER, "3"),
        (ValueKind.INTEGER, True),
        (ValueKind.FLOAT, False),
        (ValueKind.BOOLEAN, 1),
        (ValueKind.STRING, b"bytes"),
        (ValueKind.TIMESTAMP, "2024-01-01"),
    ])
    def test_payload_must_match_kind(self, kind, payload):
        with pytest.raises(ValueError):
            TypedValue(kind, payload)

    def test_to_dict(self):
        assert TypedValue(ValueKind.INTEGER, 42).to_dict() == {"kind": "integer", "value": 42}


def test_node_reading_to_dict():
    reading = NodeReading(
        node_id="ns=2;i=3",
        browse_name="Temperature",
        value=TypedValue(ValueKind.FLOAT, 21.5),
        source_timestamp=datetime(2024, 1, 1, 8, 30),
    )
    assert reading.to_dict() == {
        "node_id": "ns=2;i=3",
        "browse_name": "Temperature",
        "kind": "float",
        "value": 21.5,
        "timestamp": "2024-01-01T08:30:00+00:00",
    }


def test_node_reading_without_timestamps():
    reading = NodeReading("ns=2;i=4", "Running", TypedValue(ValueKind.BOOLEAN, False))
    assert reading.to_dict()["timestamp"] is None
