"""Wire framing for the cube engine: delimiter-terminated text and JSON messages."""

from __future__ import annotations

import json
import socket
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

DELIMITER = "<???DONE???---"
DEFAULT_ADDRESS = ("127.0.0.1", 14000)
PASSWORD = "password"
RESPONSE_TIMEOUT = 3.0
MESSAGE_TIMEOUT = 10.0

_DELIMITER_BYTES = DELIMITER.encode()


class ProtocolError(Exception):
    """Raised when the engine cannot be reached or answers with something unusable."""


def send_json_message(sock: socket.socket, message: Mapping[str, Any]) -> None:
    """Send ``message`` as compact JSON followed by the delimiter."""
    payload = json.dumps(message, sort_keys=True, separators=(",", ":"))
    sock.sendall(payload.encode() + _DELIMITER_BYTES)


def send_text(sock: socket.socket, text: str) -> None:
    """Send raw ``text`` followed by the delimiter."""
    sock.sendall(text.encode() + _DELIMITER_BYTES)


def _receive(sock: socket.socket, timeout: float, done) -> bytes:
    deadline = time.monotonic() + timeout
    buffer = bytearray()
    try:
        while not done(buffer):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            sock.settimeout(remaining)
            chunk = sock.recv(4096)
            if not chunk:
                break
            buffer += chunk
    except OSError:
        pass
    return bytes(buffer)


def read_response(sock: socket.socket, timeout: float = RESPONSE_TIMEOUT) -> str:
    """Read until a delimiter arrives, the peer closes or ``timeout`` passes.

    Every delimiter is removed and surrounding whitespace is stripped.
    """
    data = _receive(sock, timeout, lambda buf: _DELIMITER_BYTES in buf)
    return data.decode("utf-8", errors="replace").replace(DELIMITER, "").strip()


def read_message(sock: socket.socket, timeout: float = MESSAGE_TIMEOUT) -> str:
    """Read until the data ends with the delimiter, then drop that one trailing delimiter."""
    data = _receive(sock, timeout, lambda buf: buf.endswith(_DELIMITER_BYTES))
    text = data.decode("utf-8", errors="replace")
    return text.removesuffix(DELIMITER)


@contextmanager
def open_session(
    address: tuple[str, int] = DEFAULT_ADDRESS,
    password: str = PASSWORD,
    timeout: float = MESSAGE_TIMEOUT,
) -> Iterator[tuple[socket.socket, str]]:
    """Connect and authenticate; yield the socket and the server's auth reply."""
    host, port = address
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except OSError as exc:
        raise ProtocolError(f"failed to connect to {host}:{port}: {exc}") from exc
    with sock:
        try:
            send_text(sock, password)
        except OSError as exc:
            raise ProtocolError(f"auth write error: {exc}") from exc
        auth_response = read_response(sock)
        yield sock, auth_response