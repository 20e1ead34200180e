import socket
from datetime import datetime, timezone

import pytest
from asyncua import Server, ua

from uaclient.client import EventLoopThread
from uaclient.config import ConnectionSettings
from uaclient.logging import configure_logging

STARTED_AT = datetime(2024, 1, 1, 8, 30, tzinfo=timezone.utc)

# Browse names of every node the fixture server adds below Objects
FIXTURE_NODES = {
    "PLC": "Object",
    "Temperature": "Variable",
    "Running": "Variable",
    "Count": "Variable",
    "Label": "Variable",
    "StartedAt": "Variable",
    "Samples": "Variable",
}


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


async def _start_server(endpoint: str) -> Server:
    server = Server()
    await server.init()
    server.set_endpoint(endpoint)
    server.set_security_policy([ua.SecurityPolicyType.NoSecurity])
    idx = await server.register_namespace("urn:uaclient:test")
    assert idx == 2

    plc = await server.nodes.objects.add_object(ua.NodeId(1, idx), "PLC")
    await plc.add_variable(ua.NodeId(3, idx), "Temperature", 21.5, ua.VariantType.Double)
    await plc.add_variable(ua.NodeId(4, idx), "Running", True, ua.VariantType.Boolean)
    await plc.add_variable(ua.NodeId(5, idx), "Count", 42, ua.VariantType.Int32)
    await plc.add_variable(ua.NodeId("Label", idx), "Label", "Line 1", ua.VariantType.String)
    await plc.add_variable(ua.NodeId(7, idx), "StartedAt", STARTED_AT, ua.VariantType.DateTime)
    await plc.add_variable(ua.NodeId(8, idx), "Samples", [1, 2, 3], ua.VariantType.Int32)

    await server.start()
    return server


@pytest.fixture(autouse=True)
def reset_logging():
    """Rebind the log handler so no test writes to another test's captured stdout."""
    yield
    configure_logging("DEBUG", "text")


@pytest.fixture(scope="session")
def opcua_server():
    """Endpoint URL of an OPC UA server running on a background loop."""
    endpoint = f"opc.tcp://127.0.0.1:{free_port()}/uaclient/test"
    runner = EventLoopThread(name="fixture-server")
    runner.start()
    server = runner.run(_start_server(endpoint), timeout=30)
    yield endpoint
    runner.run(server.stop(), timeout=10)
    runner.stop()


@pytest.fixture
def unreachable_endpoint():
    return f"opc.tcp://127.0.0.1:{free_port()}/nothing/here"


@pytest.fixture
def silent_endpoint():
    """Endpoint that accepts TCP connections but never answers the OPC UA handshake."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        s.listen(8)
        yield f"opc.tcp://127.0.0.1:{s.getsockname()[1]}/silent"


@pytest.fixture
def fast_settings():
    return ConnectionSettings(
        connect_timeout=3.0,
        request_timeout=3.0,
        reconnect_attempts=2,
        backoff_initial=0.05,
        backoff_max=0.1,
        browse_max_depth=4,
    )


@pytest.fixture
def loop_thread():
    runner = EventLoopThread(name="test-loop")
    runner.start()
    yield runner
    runner.stop()
