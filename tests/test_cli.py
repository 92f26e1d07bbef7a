import json
import socket
import socketserver
import threading

import pytest

from cubeforge.cli import main, single_pod
from cubeforge.protocol import DELIMITER

DELIM = DELIMITER.encode()

REPLIES = {
    "auth": "auth_success",
    "get_cube_list": json.dumps({"cubes": ["alpha"]}),
    "get_planets": json.dumps({"planets": [{"Name": "Terra", "Position": {"x": 1, "y": 2, "z": 3}}]}),
}


class _PodHandler(socketserver.BaseRequestHandler):
    def handle(self):
        buffer = b""
        first = True
        while True:
            while DELIM not in buffer:
                chunk = self.request.recv(4096)
                if not chunk:
                    return
                buffer += chunk
            message, _, buffer = buffer.partition(DELIM)
            key = "auth" if first else json.loads(message.decode())["type"]
            first = False
            self.request.sendall(REPLIES[key].encode() + DELIM)


class _Pod(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


@pytest.fixture
def pod_port():
    server = _Pod(("127.0.0.1", 0), _PodHandler)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    yield server.server_address[1]
    server.shutdown()
    server.server_close()


def _closed_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_single_pod_records_result(pod_port, capsys):
    scanner = single_pod("127.0.0.1", pod_port)
    assert len(scanner.results) == 1
    assert scanner.results[0].success
    assert scanner.planets_map["Terra"].port == pod_port
    assert scanner.cubes_map == {"alpha": "127.0.0.1"}
    out = capsys.readouterr().out
    assert "Planets Map:" in out
    assert "Cubes Map:" in out
    assert f"Successful pods: 1 / {scanner.num_pods}" in out


def test_single_pod_unreachable(capsys):
    port = _closed_port()
    scanner = single_pod("127.0.0.1", port)
    assert not scanner.results[0].success
    assert scanner.planets_map == {}
    assert "Failed:" in capsys.readouterr().out


def test_main_scan_only_reports_failures(capsys):
    port = _closed_port()
    code = main(["127.0.0.1", "--start-port", str(port), "--pods", "1", "--timeout", "2", "--no-single"])
    assert code == 0
    out = capsys.readouterr().out
    assert "Successful pods: 0 / 1" in out
    assert "Planets Map:" not in out


def test_main_runs_single_probe(pod_port, capsys):
    code = main(["127.0.0.1", "--pods", "0", "--single-host", "127.0.0.1", "--single-port", str(pod_port)])
    assert code == 0
    out = capsys.readouterr().out
    assert "alpha" in out
    assert f"[127.0.0.1:{pod_port}] Connected: Cubes=1 Planets=1" in out