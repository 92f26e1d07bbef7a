# cubeforge

cubeforge is a client for a cube physics simulation server that speaks a
simple TCP protocol: plain text or compact JSON messages, each terminated by
the end marker `<???DONE???---`. With it you can spawn cubes, link them with
joints, drive joint motors, unfreeze and despawn whole constructs, and scan
a range of hosts and ports to find running pods and the cubes and planets
they hold.

It has no dependencies beyond the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Command line

```
cubeforge [HOST ...] [--start-port N] [--pods N] [--timeout SECONDS]
          [--single-host HOST] [--single-port N] [--no-single]
```

The command probes `--pods` pods on each host (default 10), at ports
`--start-port`, `--start-port + 3`, `--start-port + 6`, … (default start
10002), waiting up to `--timeout` seconds per pod (default 10). It then
prints a summary: one line per pod that connected, with its cube and planet
counts, one line per pod that failed, with the reason, and the totals.

Afterwards it probes a single pod (`--single-host`, default
`192.168.0.227`, at `--single-port`, default 10002), prints its planet and
cube maps and a summary for it. `--no-single` skips this step.

With no hosts given, `192.168.0.229` and `192.168.0.227` are scanned.

## Library overview

- `cubeforge.protocol` – the wire format. `send_json_message` and
  `send_text` write a message followed by the end marker; `read_response`
  reads until an end marker arrives (default 3 s) and strips every marker
  and surrounding whitespace; `read_message` reads until the data ends with
  the marker (default 10 s) and removes that trailing marker.
  `open_session` is a context manager that connects, sends the password and
  yields the socket with the server's auth reply. Connection and auth-write
  failures raise `ProtocolError`.
- `cubeforge.client` – `EngineClient(address, password)`, which defaults to
  `127.0.0.1:14000`. It remembers the names of cubes it spawned
  (`cubes`, each name with a `_BASE` suffix) and the joints it created
  (`links`, a list of `CubeLink`). Methods: `session`, `spawn_cube`,
  `spawn_cubes`, `unfreeze_all`, `unfreeze_unit`, `despawn_all`,
  `despawn_unit`, `nuke_all` (asks the server for every live cube and
  despawns them, for up to `max_passes` rounds), `set_joint_param`,
  `set_joint_params` and `link_cube_chains`. Fan-out operations open one
  connection per cube in a thread pool and return how many requests went
  out.
- `cubeforge.joints` – `find_closest_joint`, `link_cubes`,
  `rotate_leg_demo`, `rotate_all_joints_for_cube`, `get_joints_for_cube`,
  `rotate_cube_joints` (returns the started background threads),
  `link_body_cubes`, and three ways to lock every known joint:
  `stiffen_all_joints`, `stiffen_all_joints_bulk` and
  `stiffen_all_joints_single_connection`.
- `cubeforge.constructs` – eight-cube humanoids: `humanoid_cubes`,
  `humanoid_chains`, `build_construct` (spawns and hinges one humanoid),
  `spawn_constructs_around_sphere` (spreads humanoids over a Fibonacci
  sphere around each planet centre and unfreezes them), `static_bulk_test`,
  `single_unit_demo`, `set_mouth_color_yellow` and `rotate_cube`.
- `cubeforge.scanner` – `SparseScanner(hosts, start_port)` with
  `scan_all_pods`, `check_pod`, `scan_single_pod`, `add_pod_result`,
  `summary`, `print_summary` and `extract_planet_centers`; results are
  `PodResult`s, planets are `Planet`s (built with `Planet.from_dict`) and
  the planet map holds `PlanetRecord`s keyed by planet name.
- `cubeforge.helpers` – `calculate_rotation_outward`, `normalize`,
  `to_string_list`, `fibonacci_sphere` and `generate_unit_id`.

Progress and per-request failures are reported through the `logging`
module; the command line turns on INFO-level output.

## Examples

Unit names are built from a role, a domain, a generation and a version:

```python
from cubeforge.helpers import generate_unit_id, fibonacci_sphere

generate_unit_id("ARC", "openfluke.com", 1, 1)
# '[ARC]-OC-gen1-v1'

points = fibonacci_sphere(10, 120.0, [0.0, 0.0, 0.0])
# ten points spread evenly over a sphere of radius 120
```

Building a humanoid and removing it again:

```python
from cubeforge.client import EngineClient
from cubeforge.constructs import build_construct

password = "password"
client = EngineClient(("127.0.0.1", 14000), password=password)
build_construct(client, "[ARC]-OC-gen1-v1", [0.0, 120.0, 0.0])
client.unfreeze_unit("[ARC]-OC-gen1-v1")
client.despawn_unit("[ARC]-OC-gen1-v1")
```

Discovering pods:

```python
from cubeforge.scanner import SparseScanner

scanner = SparseScanner(["127.0.0.1"], 10002)
scanner.scan_all_pods()
scanner.print_summary()
centers = scanner.extract_planet_centers()
```

## What it does not do

cubeforge is only a client. It does not include the simulation server,
does not run any physics, and keeps no state between runs: the cubes and
links an `EngineClient` remembers live only in memory. The command line
covers pod discovery alone; spawning, linking and despawning are available
from Python only.