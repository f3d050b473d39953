import json
import urllib.error
import urllib.request
from http import HTTPStatus

import pytest

from bladeop.faults import FaultRegistry, InjectMessage
from bladeop.server import HookServer

_opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))


def fetch(url, data=None, method="GET"):
    req = urllib.request.Request(url, data=data, method=method)
    try:
        with _opener.open(req, timeout=5) as resp:
            return resp.status, resp.read().decode()
    except urllib.error.HTTPError as exc:
        body = exc.read().decode()
        exc.close()
        return exc.code, body


@pytest.fixture
def running():
    registry = FaultRegistry()
    server = HookServer("127.0.0.1:0", registry=registry)
    server.start()
    host, port = server.server_address
    yield server, registry, f"http://{host}:{port}"
    server.stop()


def test_handle_inject_registers_methods():
    registry = FaultRegistry()
    server = HookServer(":0", registry=registry)
    status, body = server.handle_inject(b'{"methods":["read","write"],"errno":5}')
    assert status == HTTPStatus.OK
    assert body == "success"
    assert registry.lookup("read").errno == 5
    assert registry.lookup("write") is registry.lookup("read")


def test_handle_inject_bad_body():
    registry = FaultRegistry()
    server = HookServer(":0", registry=registry)
    status, body = server.handle_inject(b"not json")
    assert status == HTTPStatus.BAD_REQUEST
    assert body == "Cannot Decode Request Message\n"
    assert registry.lookup("read") is None


def test_handle_inject_empty_body_rejected():
    server = HookServer(":0", registry=FaultRegistry())
    status, _ = server.handle_inject(b"")
    assert status == HTTPStatus.BAD_REQUEST


def test_handle_inject_wrong_type_rejected():
    server = HookServer(":0", registry=FaultRegistry())
    status, _ = server.handle_inject(b'{"methods":["read"],"delay":-3}')
    assert status == HTTPStatus.BAD_REQUEST


def test_handle_recover_clears():
    registry = FaultRegistry()
    server = HookServer(":0", registry=registry)
    server.handle_inject(b'{"methods":["read"],"errno":5}')
    status, body = server.handle_recover()
    assert status == HTTPStatus.OK
    assert body == "success"
    assert registry.lookup("read") is None


def test_http_inject_and_recover(running):
    _, registry, base = running
    payload = json.dumps(InjectMessage(methods=["mkdir"], errno=13).to_dict()).encode()
    assert fetch(base + "/inject", payload, "POST") == (200, "success")
    assert registry.lookup("mkdir").errno == 13
    assert fetch(base + "/recover") == (200, "success")
    assert registry.lookup("mkdir") is None


def test_http_bad_inject(running):
    _, _, base = running
    status, body = fetch(base + "/inject", b"{", "POST")
    assert status == 400
    assert body == "Cannot Decode Request Message\n"


def test_http_unknown_path(running):
    _, _, base = running
    status, _ = fetch(base + "/nothing")
    assert status == 404


def test_start_twice_raises(running):
    server, _, _ = running
    with pytest.raises(RuntimeError):
        server.start()


def test_server_address_available_only_while_running():
    server = HookServer("127.0.0.1:0", registry=FaultRegistry())
    with pytest.raises(RuntimeError):
        server.server_address
    server.start()
    try:
        host, port = server.server_address
        assert host == "127.0.0.1"
        assert port > 0
    finally:
        server.stop()


def test_address_without_port_rejected():
    server = HookServer("localhost", registry=FaultRegistry())
    with pytest.raises(ValueError):
        server.start()