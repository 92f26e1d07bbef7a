"""High-level client for spawning, linking, freezing and removing cubes."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from socket import socket
from typing import Any

from .helpers import to_string_list
from .protocol import (
    DEFAULT_ADDRESS,
    PASSWORD,
    RESPONSE_TIMEOUT,
    ProtocolError,
    open_session,
    read_response,
    send_json_message,
)

logger = logging.getLogger(__name__)

_MAX_WORKERS = 32


@dataclass
class Cube:
    """A cube to spawn: its name, position and an optional unit tag."""

    name: str
    position: Sequence[float]
    unit_name: str = ""


@dataclass(frozen=True)
class CubeLink:
    """A joint between two spawned cubes."""

    joint_name: str
    cube_a: str
    cube_b: str


@dataclass
class EngineClient:
    """Talks to one engine server and remembers what it has spawned and linked."""

    address: tuple[str, int] = DEFAULT_ADDRESS
    password: str = PASSWORD
    cubes: list[str] = field(default_factory=list, init=False)
    links: list[CubeLink] = field(default_factory=list, init=False)
    response_timeout: float = field(default=RESPONSE_TIMEOUT, init=False)

    def __init__(self, address: tuple[str, int] = DEFAULT_ADDRESS, password: str = PASSWORD):
        self.address = tuple(address)
        self.password = password
        self.cubes = []
        self.links = []
        self.response_timeout = RESPONSE_TIMEOUT
        self._cubes_lock = threading.Lock()
        self._links_lock = threading.Lock()

    @contextmanager
    def session(self) -> Iterator[tuple[socket, str]]:
        """Open an authenticated connection; yield the socket and auth reply."""
        with open_session(self.address, self.password) as opened:
            yield opened

    def _send_one(self, message: Mapping[str, Any], label: str) -> bool:
        try:
            with self.session() as (sock, _):
                send_json_message(sock, message)
        except (ProtocolError, OSError) as exc:
            logger.warning("[%s] %s failed: %s", label, message.get("cube_name", ""), exc)
            return False
        return True

    def _fan_out(
        self,
        names: Iterable[str],
        build: Callable[[str], Mapping[str, Any]],
        label: str,
    ) -> int:
        names = list(names)
        if not names:
            return 0
        workers = min(_MAX_WORKERS, len(names))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda name: self._send_one(build(name), label), names))
        return sum(results)

    def _snapshot_cubes(self, unit_name: str | None = None) -> list[str]:
        with self._cubes_lock:
            names = list(self.cubes)
        if unit_name is None:
            return names
        prefix = unit_name + "_"
        return [name for name in names if name.startswith(prefix)]

    def spawn_cube(self, cube: Cube) -> str | None:
        """Spawn ``cube`` as a base cube; return its registered name, or None on failure."""
        message = {
            "type": "spawn_cube",
            "cube_name": cube.name,
            "position": list(cube.position),
            "rotation": [0, 0, 0],
            "is_base": True,
        }
        if not self._send_one(message, "Spawn"):
            return None
        full_name = cube.name + "_BASE"
        with self._cubes_lock:
            self.cubes.append(full_name)
        return full_name

    def spawn_cubes(self, cubes: Iterable[Cube]) -> list[str]:
        """Spawn cubes concurrently; return the names that were registered."""
        cubes = list(cubes)
        if not cubes:
            return []
        with ThreadPoolExecutor(max_workers=min(_MAX_WORKERS, len(cubes))) as pool:
            names = list(pool.map(self.spawn_cube, cubes))
        return [name for name in names if name is not None]

    @staticmethod
    def _unfreeze_message(name: str) -> dict[str, Any]:
        return {"type": "freeze_cube", "cube_name": name, "freeze": False}

    @staticmethod
    def _despawn_message(name: str) -> dict[str, Any]:
        return {"type": "despawn_cube", "cube_name": name}

    def unfreeze_all(self) -> int:
        """Unfreeze every known cube; return how many requests went out."""
        return self._fan_out(self._snapshot_cubes(), self._unfreeze_message, "Unfreeze")

    def unfreeze_unit(self, unit_name: str) -> int:
        """Unfreeze the known cubes that belong to ``unit_name``."""
        count = self._fan_out(
            self._snapshot_cubes(unit_name), self._unfreeze_message, f"{unit_name}] [Unfreeze"
        )
        logger.info("[%s] All cubes unfrozen.", unit_name)
        return count

    def despawn_all(self) -> int:
        """Despawn every known cube; return how many requests went out."""
        return self._fan_out(self._snapshot_cubes(), self._despawn_message, "Despawn")

    def despawn_unit(self, unit_name: str) -> int:
        """Despawn the known cubes that belong to ``unit_name``."""
        count = self._fan_out(
            self._snapshot_cubes(unit_name), self._despawn_message, f"{unit_name}] [Despawn"
        )
        logger.info("[%s] All cubes despawned.", unit_name)
        return count

    def nuke_all(self, max_passes: int = 5, pause: float = 0.5) -> int:
        """Ask the server for every live cube and despawn them, for up to ``max_passes`` rounds.

        Returns the total number of despawn requests sent.
        """
        total = 0
        with self.session() as (sock, _):
            for attempt in range(1, max_passes + 1):
                try:
                    send_json_message(sock, {"type": "get_cube_list"})
                except OSError as exc:
                    raise ProtocolError(f"failed to request cube list: {exc}") from exc
                raw = read_response(sock, self.response_timeout)
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError as exc:
                    raise ProtocolError(f"invalid cube list: {exc}") from exc
                if not isinstance(data, dict):
                    raise ProtocolError(f"invalid cube list: {raw!r}")
                cubes = to_string_list(data.get("cubes"))
                if not cubes:
                    logger.info("[Nuke] All cubes cleared.")
                    break
                for cube in cubes:
                    try:
                        send_json_message(sock, self._despawn_message(cube))
                    except OSError as exc:
                        logger.warning("[Nuke] Failed to despawn cube %s: %s", cube, exc)
                total += len(cubes)
                logger.info("[Nuke] NUKED %d cubes (pass %d)", len(cubes), attempt)
                time.sleep(pause)
        logger.info("[Nuke] Finished.")
        return total

    def _request(self, sock: socket, message: Mapping[str, Any], label: str) -> str:
        try:
            send_json_message(sock, message)
        except OSError as exc:
            raise ProtocolError(f"[{label}] failed to send: {exc}") from exc
        return read_response(sock, self.response_timeout)

    def set_joint_param(
        self, sock: socket, joint_name: str, param_name: str, value: float
    ) -> str:
        """Set one parameter of a joint over ``sock``; return the server's reply."""
        message = {
            "type": "set_joint_param",
            "joint_name": joint_name,
            "param_name": param_name,
            "value": value,
        }
        response = self._request(sock, message, "setJointParam")
        logger.info(
            "[setJointParam] Joint %s param %s set to %s, response: %s",
            joint_name, param_name, value, response,
        )
        return response

    def set_joint_params(
        self, sock: socket, joint_name: str, params: Mapping[str, float]
    ) -> str:
        """Set several parameters of a joint at once; return the server's reply."""
        message = {"type": "set_joint_params", "joint_name": joint_name, "params": dict(params)}
        response = self._request(sock, message, "setJointParams")
        logger.info("[setJointParams] %s response: %s", joint_name, response)
        return response

    def link_cube_chains(
        self,
        chains: Sequence[Sequence[str]],
        joint_type: str,
        joint_params: Mapping[str, float],
    ) -> str:
        """Join each chain of cubes pairwise with joints; return the server's reply."""
        with self.session() as (sock, auth_response):
            logger.info("[linkCubeChains] Auth response: %s", auth_response)
            message = {
                "type": "link_cube_chains",
                "chains": [list(chain) for chain in chains],
                "joint_type": joint_type,
                "joint_params": dict(joint_params),
            }
            response = self._request(sock, message, "linkCubeChains")
        logger.info("[linkCubeChains] Server response: %s", response)
        new_links = [
            CubeLink(f"joint_{joint_type}_{cube_a}_{cube_b}", cube_a, cube_b)
            for chain in chains
            for cube_a, cube_b in zip(chain, chain[1:])
        ]
        with self._links_lock:
            self.links.extend(new_links)
        return response