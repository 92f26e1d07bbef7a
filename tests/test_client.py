import json
import socket
import socketserver
import threading
import time
from collections import deque

import pytest

from cubeforge.client import Cube, CubeLink, EngineClient
from cubeforge.protocol import DELIMITER, ProtocolError

_DELIM = DELIMITER.encode()


class _Handler(socketserver.BaseRequestHandler):
    def handle(self):
        buffer = b""
        authed = False
        while True:
            try:
                data = self.request.recv(4096)
            except OSError:
                return
            if not data:
                return
            buffer += data
            while _DELIM in buffer:
                frame, buffer = buffer.split(_DELIM, 1)
                if not authed:
                    authed = True
                    self.server.record("auth", frame.decode())
                    self.request.sendall(b'{"type":"auth_success"}' + _DELIM)
                    continue
                message = json.loads(frame)
                self.server.record("message", message)
                reply = self.server.reply_for(message)
                if reply is not None:
                    self.request.sendall(json.dumps(reply).encode() + _DELIM)


class _FakeEngine(socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self):
        super().__init__(("127.0.0.1", 0), _Handler)
        self.lock = threading.Lock()
        self.auths = []
        self.messages = []
        self.cube_lists = deque()

    def record(self, kind, item):
        with self.lock:
            (self.auths if kind == "auth" else self.messages).append(item)

    def reply_for(self, message):
        kind = message["type"]
        if kind == "get_cube_list":
            with self.lock:
                cubes = self.cube_lists.popleft() if self.cube_lists else []
            return {"type": "cube_list", "cubes": cubes}
        if kind in ("set_joint_param", "set_joint_params", "link_cube_chains"):
            return {"type": "ok", "echo": kind}
        return None

    def wait_for(self, count, kind=None):
        deadline = time.monotonic() + 5
        while time.monotonic() < deadline:
            with self.lock:
                found = [m for m in self.messages if kind is None or m["type"] == kind]
            if len(found) >= count:
                return found
            time.sleep(0.01)
        return found


@pytest.fixture
def engine():
    server = _FakeEngine()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def client(engine):
    password = "password"
    return EngineClient(engine.server_address, password=password)


def _closed_port():
    probe = socket.socket()
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    return port


def test_spawn_cube_registers_base_name_and_sends_spawn(client, engine):
    assert client.spawn_cube(Cube("u_head", [1.0, 2.0, 3.0])) == "u_head_BASE"
    assert client.cubes == ["u_head_BASE"]
    (message,) = engine.wait_for(1, "spawn_cube")
    assert message["cube_name"] == "u_head"
    assert message["position"] == [1.0, 2.0, 3.0]
    assert message["rotation"] == [0, 0, 0]
    assert message["is_base"] is True
    assert engine.auths[0] == "password"


def test_spawn_cube_without_server_returns_none():
    client = EngineClient(("127.0.0.1", _closed_port()))
    assert client.spawn_cube(Cube("x", [0, 0, 0])) is None
    assert client.cubes == []


def test_spawn_cubes_registers_all(client, engine):
    cubes = [Cube(f"u_part{i}", [i, 0, 0]) for i in range(5)]
    names = client.spawn_cubes(cubes)
    assert sorted(names) == sorted(c.name + "_BASE" for c in cubes)
    assert sorted(client.cubes) == sorted(names)
    assert len(engine.wait_for(5, "spawn_cube")) == 5


def test_unfreeze_unit_targets_only_prefix(client, engine):
    client.spawn_cubes([Cube("a_head", [0, 0, 0]), Cube("a_body", [0, 1, 0]), Cube("b_head", [0, 0, 0])])
    assert client.unfreeze_unit("a") == 2
    messages = engine.wait_for(2, "freeze_cube")
    assert sorted(m["cube_name"] for m in messages) == ["a_body_BASE", "a_head_BASE"]
    assert all(m["freeze"] is False for m in messages)


def test_unfreeze_all_and_despawn_all(client, engine):
    client.spawn_cubes([Cube("a_head", [0, 0, 0]), Cube("b_head", [0, 0, 0])])
    assert client.unfreeze_all() == 2
    assert client.despawn_all() == 2
    despawned = engine.wait_for(2, "despawn_cube")
    assert sorted(m["cube_name"] for m in despawned) == sorted(client.cubes)


def test_despawn_unit_with_no_matches_sends_nothing(client, engine):
    client.spawn_cube(Cube("a_head", [0, 0, 0]))
    assert client.despawn_unit("zzz") == 0
    assert engine.wait_for(1, "despawn_cube") == []


def test_nuke_all_despawns_until_cleared(client, engine):
    engine.cube_lists.extend([["x_BASE", "y_BASE"], []])
    assert client.nuke_all(max_passes=5, pause=0) == 2
    despawned = engine.wait_for(2, "despawn_cube")
    assert sorted(m["cube_name"] for m in despawned) == ["x_BASE", "y_BASE"]
    assert len(engine.wait_for(2, "get_cube_list")) == 2


def test_nuke_all_stops_after_max_passes(client, engine):
    engine.cube_lists.extend([["a"], ["a"], ["a"]])
    assert client.nuke_all(max_passes=2, pause=0) == 2
    assert len(engine.wait_for(2, "get_cube_list")) == 2


def test_nuke_all_without_server_raises():
    client = EngineClient(("127.0.0.1", _closed_port()))
    with pytest.raises(ProtocolError):
        client.nuke_all(max_passes=1, pause=0)


def test_set_joint_param_returns_reply(client, engine):
    with client.session() as (sock, auth):
        assert "auth_success" in auth
        response = client.set_joint_param(sock, "j1", "motor_enable", 1.0)
    assert json.loads(response) == {"type": "ok", "echo": "set_joint_param"}
    (message,) = engine.wait_for(1, "set_joint_param")
    assert message == {
        "type": "set_joint_param",
        "joint_name": "j1",
        "param_name": "motor_enable",
        "value": 1.0,
    }


def test_set_joint_params_sends_all_params(client, engine):
    params = {"limit_upper": 0.0, "motor_max_impulse": 1000.0}
    with client.session() as (sock, _):
        response = client.set_joint_params(sock, "j2", params)
    assert json.loads(response)["echo"] == "set_joint_params"
    (message,) = engine.wait_for(1, "set_joint_params")
    assert message["params"] == params


def test_link_cube_chains_records_pairwise_links(client, engine):
    response = client.link_cube_chains([["a", "b", "c"], ["b", "d"]], "hinge", {"motor_enable": 1.0})
    assert json.loads(response)["echo"] == "link_cube_chains"
    assert client.links == [
        CubeLink("joint_hinge_a_b", "a", "b"),
        CubeLink("joint_hinge_b_c", "b", "c"),
        CubeLink("joint_hinge_b_d", "b", "d"),
    ]
    (message,) = engine.wait_for(1, "link_cube_chains")
    assert message["chains"] == [["a", "b", "c"], ["b", "d"]]


def test_link_cube_chains_without_server_raises_and_records_nothing():
    client = EngineClient(("127.0.0.1", _closed_port()))
    with pytest.raises(ProtocolError):
        client.link_cube_chains([["a", "b"]], "hinge", {})
    assert client.links == []