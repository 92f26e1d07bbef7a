"""Joint tools: linking cubes, driving joint motors and stiffening joints."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from .client import CubeLink, EngineClient
from .helpers import to_string_list
from .protocol import ProtocolError, read_response, send_json_message

logger = logging.getLogger(__name__)

STIFF_PARAMS: dict[str, float] = {
    "limit_upper": 0.0,
    "limit_lower": 0.0,
    "motor_enable": 1.0,
    "motor_target_velocity": 0.0,
    "motor_max_impulse": 1000.0,
}

_MAX_WORKERS = 32


def find_closest_joint(client: EngineClient, target_cube: str) -> str | None:
    """Return the name of the first known joint touching ``target_cube``, or None."""
    for link in list(client.links):
        if target_cube in (link.cube_a, link.cube_b):
            logger.info("Found joint: %s (%s <-> %s)", link.joint_name, link.cube_a, link.cube_b)
            return link.joint_name
    logger.warning("No joint found for cube: %s", target_cube)
    return None


def link_cubes(
    client: EngineClient, cube_a: str, cube_b: str, joint_type: str, joint_name: str
) -> CubeLink:
    """Create a named joint between two cubes and remember it on ``client``."""
    with client.session() as (sock, _):
        message = {
            "type": "create_joint",
            "cube1": cube_a,
            "cube2": cube_b,
            "joint_type": joint_type,
            "joint_name": joint_name,
        }
        try:
            send_json_message(sock, message)
        except OSError as exc:
            raise ProtocolError(f"[Link] failed to send link command: {exc}") from exc
    link = CubeLink(joint_name, cube_a, cube_b)
    client.links.append(link)
    logger.info("Linked %s <--> %s with joint '%s' (%s)", cube_a, cube_b, joint_name, joint_type)
    return link


def _swing(client: EngineClient, sock, joint_name: str, pause: float) -> None:
    client.set_joint_param(sock, joint_name, "motor_enable", 1.0)
    client.set_joint_param(sock, joint_name, "motor_target_velocity", 5.0)
    client.set_joint_param(sock, joint_name, "motor_max_impulse", 1000.0)
    time.sleep(pause)
    client.set_joint_param(sock, joint_name, "motor_target_velocity", -5.0)
    time.sleep(pause)
    client.set_joint_param(sock, joint_name, "motor_target_velocity", 0.0)


def rotate_leg_demo(client: EngineClient, joint_name: str, pause: float = 1.0) -> None:
    """Drive a joint's motor forward, then back, then stop it."""
    with client.session() as (sock, _):
        logger.info("Rotating forward...")
        _swing(client, sock, joint_name, pause)
    logger.info("Leg motion complete.")


def rotate_all_joints_for_cube(
    client: EngineClient, target_cube: str, pause: float = 0.5
) -> list[str]:
    """Swing every known joint touching ``target_cube``; return the joints that completed."""
    logger.info("Brute-forcing all joints for cube: %s", target_cube)
    done = []
    for link in list(client.links):
        if target_cube not in (link.cube_a, link.cube_b):
            continue
        logger.info("Rotating joint: %s (%s <-> %s)", link.joint_name, link.cube_a, link.cube_b)
        try:
            with client.session() as (sock, _):
                _swing(client, sock, link.joint_name, pause)
        except (ProtocolError, OSError) as exc:
            logger.warning("[rotateAllJointsForCube] joint %s failed: %s", link.joint_name, exc)
            continue
        done.append(link.joint_name)
        logger.info("Done rotating joint: %s", link.joint_name)
    return done


def get_joints_for_cube(client: EngineClient, cube_name: str) -> list[str]:
    """Ask the server which joints are attached to ``cube_name``."""
    with client.session() as (sock, _):
        try:
            send_json_message(sock, {"type": "get_joints_for_cube", "cube_name": cube_name})
        except OSError as exc:
            raise ProtocolError(f"[getJointsForCube] failed to send command: {exc}") from exc
        raw = read_response(sock, client.response_timeout)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"[getJointsForCube] invalid response: {exc}") from exc
    if not isinstance(data, dict):
        raise ProtocolError(f"[getJointsForCube] invalid response: {raw!r}")
    return to_string_list(data.get("joints"))


def rotate_cube_joints(
    client: EngineClient, cube_name: str, velocity: float, duration: float
) -> list[threading.Thread]:
    """Start one motor cycle per joint of ``cube_name`` in the background.

    Each cycle runs at ``velocity``, then reverses, then stops, waiting
    ``duration`` seconds between steps. The started threads are returned.
    """
    joints = get_joints_for_cube(client, cube_name)
    if not joints:
        logger.info("[rotateCubeJoints] No joints found for cube %s", cube_name)
        return []
    logger.info("Found %d joints for %s. Applying rotation...", len(joints), cube_name)

    def cycle(joint_name: str) -> None:
        params = {
            "motor_enable": 1.0,
            "motor_target_velocity": velocity,
            "motor_max_impulse": 500.0,
        }
        try:
            with client.session() as (sock, _):
                client.set_joint_params(sock, joint_name, params)
                time.sleep(duration)
                params["motor_target_velocity"] = -velocity
                client.set_joint_params(sock, joint_name, params)
                time.sleep(duration)
                params["motor_target_velocity"] = 0.0
                client.set_joint_params(sock, joint_name, params)
        except (ProtocolError, OSError) as exc:
            logger.warning("[rotateCubeJoints] joint %s failed: %s", joint_name, exc)
            return
        logger.info("Completed joint cycle for: %s", joint_name)

    threads = [threading.Thread(target=cycle, args=(joint,)) for joint in joints]
    for thread in threads:
        thread.start()
    return threads


def link_body_cubes(
    client: EngineClient, prefix: str, joint_type: str, joint_params: Mapping[str, float]
) -> str:
    """Ask the server to link every cube whose name starts with ``prefix``; return its reply."""
    with client.session() as (sock, auth_response):
        logger.info("[testLinkBodyCubes] Auth response: %s", auth_response)
        message: dict[str, Any] = {
            "type": "link_body_cubes",
            "prefix": prefix,
            "joint_type": joint_type,
            "joint_params": dict(joint_params),
        }
        try:
            send_json_message(sock, message)
        except OSError as exc:
            raise ProtocolError(f"[testLinkBodyCubes] error sending command: {exc}") from exc
        response = read_response(sock, client.response_timeout)
    logger.info("[testLinkBodyCubes] Command response: %s", response)
    return response


def _per_joint(client: EngineClient, work: Callable[[Any, str], None]) -> int:
    links = list(client.links)
    if not links:
        return 0

    def run(link: CubeLink) -> bool:
        try:
            with client.session() as (sock, _):
                work(sock, link.joint_name)
        except (ProtocolError, OSError) as exc:
            logger.warning("[stiffenAllJoints] joint %s failed: %s", link.joint_name, exc)
            return False
        return True

    with ThreadPoolExecutor(max_workers=min(_MAX_WORKERS, len(links))) as pool:
        return sum(pool.map(run, links))


def stiffen_all_joints(client: EngineClient) -> int:
    """Lock every known joint, one parameter per request, one connection per joint.

    Returns the number of joints updated.
    """

    def work(sock, joint_name: str) -> None:
        for name, value in STIFF_PARAMS.items():
            client.set_joint_param(sock, joint_name, name, value)

    count = _per_joint(client, work)
    logger.info("[stiffenAllJoints] All joints have been stiffened.")
    return count


def stiffen_all_joints_bulk(client: EngineClient) -> int:
    """Lock every known joint with one bulk request per joint; return the joints updated."""
    count = _per_joint(
        client, lambda sock, joint_name: client.set_joint_params(sock, joint_name, STIFF_PARAMS)
    )
    logger.info("[stiffenAllJoints] All joints updated.")
    return count


def stiffen_all_joints_single_connection(client: EngineClient) -> int:
    """Lock every known joint over a single connection; return the joints updated."""
    links = list(client.links)
    with client.session() as (sock, _):
        for link in links:
            for name, value in STIFF_PARAMS.items():
                client.set_joint_param(sock, link.joint_name, name, value)
    logger.info("[stiffenAllJoints] All joints have been stiffened using a single connection.")
    return len(links)