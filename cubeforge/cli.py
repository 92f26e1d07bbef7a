"""Command line entry point: discover pods and report what they host."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence

from .scanner import NUM_PODS, START_PORT, TIMEOUT, SparseScanner

DEFAULT_HOSTS = ("192.168.0.229", "192.168.0.227")
DEFAULT_SINGLE_HOST = "192.168.0.227"


def single_pod(host: str, port: int) -> SparseScanner:
    """Probe one pod, print its maps and summary, and return the scanner used."""
    scanner = SparseScanner([host], port)
    result = scanner.scan_single_pod(host, port)
    scanner.add_pod_result(result)
    print("Planets Map:", scanner.planets_map)
    print("Cubes Map:", scanner.cubes_map)
    scanner.print_summary()
    return scanner


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cubeforge", description="Discover engine pods and map their planets and cubes."
    )
    parser.add_argument("hosts", nargs="*", default=list(DEFAULT_HOSTS), help="hosts to scan")
    parser.add_argument("--start-port", type=int, default=START_PORT, help="first pod port")
    parser.add_argument("--pods", type=int, default=NUM_PODS, help="pods per host")
    parser.add_argument("--timeout", type=float, default=TIMEOUT, help="seconds per pod")
    parser.add_argument("--single-host", default=DEFAULT_SINGLE_HOST, help="host for the single-pod probe")
    parser.add_argument("--single-port", type=int, default=START_PORT, help="port for the single-pod probe")
    parser.add_argument("--no-single", action="store_true", help="skip the single-pod probe")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Scan all pods, print a summary, then probe a single pod."""
    args = _parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    scanner = SparseScanner(args.hosts or list(DEFAULT_HOSTS), args.start_port)
    scanner.num_pods = args.pods
    scanner.timeout = args.timeout
    scanner.scan_all_pods()
    scanner.print_summary()

    if not args.no_single:
        single_pod(args.single_host, args.single_port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())