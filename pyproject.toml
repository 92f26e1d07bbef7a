[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cubeforge"
version = "0.1.0"
description = "Client toolkit for a cube physics simulation server: spawn, link, animate and despawn cube constructs, and discover pods across hosts."
requires-python = ">=3.10"
dependencies = []
keywords = ["simulation", "physics", "cubes", "joints", "tcp", "discovery"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Simulation",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
cubeforge = "cubeforge.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["cubeforge"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
