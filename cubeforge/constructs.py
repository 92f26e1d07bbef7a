"""Humanoid constructs: building, mass spawning and small demo routines."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

from .client import Cube, EngineClient
from .helpers import fibonacci_sphere, generate_unit_id
from .joints import STIFF_PARAMS
from .protocol import ProtocolError, read_response, send_json_message

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "ARC"
DEFAULT_DOMAIN = "openfluke.com"
JOINT_TYPE = "hinge"
YELLOW = "#FFFF00"

MOUTH_CUBES: tuple[str, ...] = (
    "leftmouth_BASE",
    "rightmouth_BASE",
    "body24_BASE",
    "body22_BASE",
    "body9_BASE",
    "body7_BASE",
    "body17_BASE",
    "head1_BASE",
    "head3_BASE",
    "head2_BASE",
    "head8_BASE",
    "body2_BASE",
)

# Part name and its (x, y) offset from the construct's anchor point.
_PARTS: tuple[tuple[str, float, float], ...] = (
    ("head", 0.0, 3.6),
    ("body", 0.0, 2.4),
    ("left_arm", -1.2, 2.4),
    ("right_arm", 1.2, 2.4),
    ("left_leg", -0.6, 1.2),
    ("right_leg", 0.6, 1.2),
    ("left_foot", -0.6, 0.0),
    ("right_foot", 0.6, 0.0),
)

_MAX_WORKERS = 32


def humanoid_cubes(unit_name: str, center: Sequence[float]) -> list[Cube]:
    """Return the eight cubes of a humanoid standing on ``center``."""
    cx, cy, cz = center[0], center[1], center[2]
    return [
        Cube(f"{unit_name}_{part}", [cx + dx, cy + dy, cz], unit_name)
        for part, dx, dy in _PARTS
    ]


def humanoid_chains(unit_name: str) -> list[list[str]]:
    """Return the chains of spawned cube names that make up a humanoid's skeleton."""

    def base(part: str) -> str:
        return f"{unit_name}_{part}_BASE"

    return [
        [base("head"), base("body")],
        [base("body"), base("left_arm"), base("left_leg"), base("left_foot")],
        [base("body"), base("right_arm"), base("right_leg"), base("right_foot")],
    ]


def build_construct(client: EngineClient, unit_name: str, center: Sequence[float]) -> str:
    """Spawn a humanoid at ``center`` and hinge its parts together; return the link reply."""
    logger.info(
        "Spawning unit: %s at position (%.2f, %.2f, %.2f)",
        unit_name, center[0], center[1], center[2],
    )
    client.spawn_cubes(humanoid_cubes(unit_name, center))
    logger.info("Construct %s spawned", unit_name)
    response = client.link_cube_chains(humanoid_chains(unit_name), JOINT_TYPE, STIFF_PARAMS)
    logger.info("Construct %s linked", unit_name)
    return response


def _build_logged(client: EngineClient, unit_name: str, center: Sequence[float]) -> bool:
    try:
        build_construct(client, unit_name, center)
    except (ProtocolError, OSError) as exc:
        logger.error("Error linking cubes for %s: %s", unit_name, exc)
        return False
    return True


def spawn_constructs_around_sphere(
    client: EngineClient,
    gen: int,
    role: str,
    domain: str,
    planet_centers: Sequence[Sequence[float]],
    radius: float,
    padding_degrees: float,
    constructs_per_planet: int,
) -> list[str]:
    """Spread humanoids over a sphere around each planet, then unfreeze them.

    Positions come from a Fibonacci sphere, so ``padding_degrees`` is accepted
    but does not affect placement. Returns the unit names in spawn order.
    """
    jobs: list[tuple[str, list[float]]] = []
    for planet_idx, center in enumerate(planet_centers):
        logger.info(
            "Setting up Planet %d at (%.2f, %.2f, %.2f)",
            planet_idx + 1, center[0], center[1], center[2],
        )
        positions = fibonacci_sphere(constructs_per_planet, radius, center)
        for i, position in enumerate(positions):
            version = planet_idx * constructs_per_planet + i + 1
            jobs.append((generate_unit_id(role, domain, gen, version), position))

    def run(job: tuple[str, list[float]]) -> None:
        unit_name, position = job
        _build_logged(client, unit_name, position)
        client.unfreeze_unit(unit_name)

    if jobs:
        with ThreadPoolExecutor(max_workers=min(_MAX_WORKERS, len(jobs))) as pool:
            list(pool.map(run, jobs))
    logger.info("All constructs unfrozen")
    return [unit_name for unit_name, _ in jobs]


def static_bulk_test(client: EngineClient, count: int = 5) -> list[str]:
    """Spawn ``count`` humanoids in a row, unfreeze them, then remove them one by one."""
    unit_names = []
    for i in range(1, count + 1):
        unit_name = generate_unit_id(DEFAULT_ROLE, DEFAULT_DOMAIN, i, 1)
        unit_names.append(unit_name)
        _build_logged(client, unit_name, [float(20 * i), 120.0, -3.0])

    for unit_name in unit_names:
        client.unfreeze_unit(unit_name)
    logger.info("All constructs unfrozen")
    time.sleep(3)

    for unit_name in unit_names:
        client.despawn_unit(unit_name)
        time.sleep(1)
    logger.info("All constructs removed, simulation complete.")
    return unit_names


def single_unit_demo(client: EngineClient) -> str:
    """Build one humanoid, let it fall, remove it, then run the bulk test; return its name."""
    unit_name = generate_unit_id(DEFAULT_ROLE, DEFAULT_DOMAIN, 1, 1)
    _build_logged(client, unit_name, [40.0, 120.0, -3.0])
    client.unfreeze_unit(unit_name)
    time.sleep(6)
    client.despawn_unit(unit_name)
    static_bulk_test(client)
    logger.info("Humanoid despawned, simulation complete.")
    return unit_name


def set_mouth_color_yellow(client: EngineClient) -> int:
    """Paint the mouth cubes yellow; return how many colour requests went out."""

    def paint(name: str) -> bool:
        try:
            with client.session() as (sock, _):
                send_json_message(sock, {"type": "set_color", "cube_name": name, "hex": YELLOW})
        except (ProtocolError, OSError) as exc:
            logger.warning("[Color] cube %s failed: %s", name, exc)
            return False
        return True

    with ThreadPoolExecutor(max_workers=len(MOUTH_CUBES)) as pool:
        return sum(pool.map(paint, MOUTH_CUBES))


def rotate_cube(client: EngineClient, cube_name: str, rotation_delta: Sequence[float]) -> str:
    """Ask the server to rotate ``cube_name`` by ``rotation_delta`` degrees; return its reply."""
    with client.session() as (sock, _):
        message = {"type": "apply_force", "rotate": list(rotation_delta), "target": cube_name}
        try:
            send_json_message(sock, message)
        except OSError as exc:
            raise ProtocolError(f"[rotateCube] failed to send rotate command: {exc}") from exc
        response = read_response(sock, client.response_timeout)
    logger.info("[rotateCube] Server response: %s", response)
    return response