"""Discovery of engine pods: which cubes and planets each pod is hosting."""

from __future__ import annotations

import json
import logging
import socket
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from .helpers import to_string_list
from .protocol import MESSAGE_TIMEOUT, PASSWORD, read_message, send_text

logger = logging.getLogger(__name__)

START_PORT = 10002
PORT_STEP = 3
NUM_PODS = 10
TIMEOUT = MESSAGE_TIMEOUT

CUBE_LIST_REQUEST = '{"type":"get_cube_list"}'
PLANETS_REQUEST = '{"type":"get_planets"}'

_MAX_WORKERS = 32


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _string(value: Any, key: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string, got {value!r}")
    return value


def _integer(value: Any, key: str) -> int:
    if value is None:
        return 0
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return value


def _number_map(value: Any, key: str) -> dict[str, float]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{key} must be an object, got {value!r}")
    result = {}
    for name, number in value.items():
        if number is None:
            result[name] = 0.0
        elif _is_number(number):
            result[name] = float(number)
        else:
            raise ValueError(f"{key}.{name} must be a number, got {number!r}")
    return result


def _number_maps(value: Any, key: str) -> list[dict[str, float]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{key} must be an array, got {value!r}")
    return [_number_map(item, key) for item in value]


@dataclass
class Planet:
    """A planet as a pod reports it."""

    name: str = ""
    position: dict[str, float] = field(default_factory=dict)
    seed: int = 0
    resource_locations: list[dict[str, float]] = field(default_factory=list)
    tree_locations: list[dict[str, float]] = field(default_factory=list)
    biome_type: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> Planet:
        """Build a planet from its decoded JSON object; raise ValueError on bad fields."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"planet must be an object, got {data!r}")
        return cls(
            name=_string(data.get("Name"), "Name"),
            position=_number_map(data.get("Position"), "Position"),
            seed=_integer(data.get("Seed"), "Seed"),
            resource_locations=_number_maps(data.get("ResourceLocations"), "ResourceLocations"),
            tree_locations=_number_maps(data.get("TreeLocations"), "TreeLocations"),
            biome_type=_integer(data.get("BiomeType"), "BiomeType"),
        )

    @property
    def coordinates(self) -> tuple[float, float, float]:
        """The planet's position as an (x, y, z) tuple; missing axes are zero."""
        return (
            self.position.get("x", 0.0),
            self.position.get("y", 0.0),
            self.position.get("z", 0.0),
        )


@dataclass(frozen=True)
class PlanetRecord:
    """Where a planet lives: its centre and the pod that hosts it."""

    name: str
    coordinates: tuple[float, float, float]
    host: str
    port: int


@dataclass
class PodResult:
    """The outcome of probing one pod."""

    host: str
    port: int
    success: bool
    error: str = ""
    cubes: list[str] = field(default_factory=list)
    planets: list[Planet] = field(default_factory=list)


def _parse_cubes(raw: str) -> list[str]:
    data = json.loads(raw)
    if data is None:
        return []
    if not isinstance(data, dict):
        raise ValueError(f"cube list must be an object, got {raw!r}")
    return to_string_list(data.get("cubes"))


def _parse_planets(raw: str) -> list[Planet]:
    data = json.loads(raw)
    if data is None:
        return []
    if not isinstance(data, dict):
        raise ValueError(f"planet list must be an object, got {raw!r}")
    planets: list[Planet] = []
    for group in data.values():
        if group is None:
            continue
        if not isinstance(group, list):
            raise ValueError(f"planet group must be an array, got {group!r}")
        planets.extend(Planet.from_dict(item) for item in group)
    return planets


class SparseScanner:
    """Probes a range of pod ports on several hosts and maps their planets and cubes."""

    def __init__(self, hosts: Iterable[str], start_port: int = START_PORT):
        self.hosts = list(hosts)
        self.start_port = start_port
        self.port_step = PORT_STEP
        self.num_pods = NUM_PODS
        self.password = PASSWORD
        self.timeout = TIMEOUT
        self.results: list[PodResult] = []
        self.planets_map: dict[str, PlanetRecord] = {}
        self.cubes_map: dict[str, str] = {}

    def _targets(self) -> list[tuple[str, int]]:
        return [
            (host, self.start_port + i * self.port_step)
            for host in self.hosts
            for i in range(self.num_pods)
        ]

    def _record(self, result: PodResult) -> None:
        if not result.success:
            return
        for planet in result.planets:
            self.planets_map[planet.name] = PlanetRecord(
                planet.name, planet.coordinates, result.host, result.port
            )
        for cube in result.cubes:
            self.cubes_map[cube] = result.host

    def scan_all_pods(self) -> list[PodResult]:
        """Probe every pod of every host concurrently; return this scan's results."""
        started = time.monotonic()
        targets = self._targets()
        new_results: list[PodResult] = []
        if targets:
            with ThreadPoolExecutor(max_workers=min(_MAX_WORKERS, len(targets))) as pool:
                new_results = list(pool.map(lambda target: self.check_pod(*target), targets))
        self.results.extend(new_results)
        for result in self.results:
            self._record(result)
        logger.info("Discovery complete in %.3fs", time.monotonic() - started)
        return new_results

    def check_pod(self, host: str, port: int) -> PodResult:
        """Connect to one pod, authenticate and fetch its cubes and planets."""

        def failed(message: str) -> PodResult:
            return PodResult(host, port, False, message)

        try:
            sock = socket.create_connection((host, port), timeout=self.timeout)
        except OSError as exc:
            return failed(f"Failed to connect: {exc}")
        with sock:
            try:
                send_text(sock, self.password)
            except OSError as exc:
                return failed(f"Failed to send auth: {exc}")
            auth_response = read_message(sock, self.timeout)
            if "auth_success" not in auth_response:
                return failed(f"Authentication failed: {auth_response}")

            try:
                send_text(sock, CUBE_LIST_REQUEST)
            except OSError:
                return failed("Failed to request cubes")
            try:
                cubes = _parse_cubes(read_message(sock, self.timeout))
            except ValueError:
                return failed("Failed to parse cube list")

            try:
                send_text(sock, PLANETS_REQUEST)
            except OSError:
                return failed("Failed to request planets")
            try:
                planets = _parse_planets(read_message(sock, self.timeout))
            except ValueError:
                return failed("Failed to parse planet list")

        return PodResult(host, port, True, cubes=cubes, planets=planets)

    def scan_single_pod(self, host: str, port: int) -> PodResult:
        """Probe one pod and map what it hosts, without adding it to ``results``."""
        result = self.check_pod(host, port)
        self._record(result)
        return result

    def add_pod_result(self, result: PodResult) -> None:
        """Keep ``result`` and map what it hosts."""
        self.results.append(result)
        self._record(result)

    def summary(self) -> str:
        """Return a readable report of every pod result and the totals."""
        lines = ["=== MULTIVERSE SUMMARY ==="]
        successes = total_cubes = total_planets = 0
        for result in self.results:
            if result.success:
                successes += 1
                total_cubes += len(result.cubes)
                total_planets += len(result.planets)
                lines.append(
                    f"[{result.host}:{result.port}] Connected: "
                    f"Cubes={len(result.cubes)} Planets={len(result.planets)}"
                )
            else:
                lines.append(f"[{result.host}:{result.port}] Failed: {result.error}")
        lines.extend(
            [
                "",
                f"Successful pods: {successes} / {self.num_pods * len(self.hosts)}",
                f"Total Cubes: {total_cubes}",
                f"Total Planets: {total_planets}",
                f"Total unique planets mapped: {len(self.planets_map)}",
            ]
        )
        return "\n".join(lines)

    def print_summary(self) -> None:
        """Print the summary report."""
        print()
        print(self.summary())

    def extract_planet_centers(self) -> list[list[float]]:
        """Return the centre of every mapped planet as an [x, y, z] list."""
        return [list(record.coordinates) for record in self.planets_map.values()]