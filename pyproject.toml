[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "matchcore"
version = "0.1.0"
description = "Building blocks for matchmaking services: match function and evaluator harnesses, health probes, counters and a CI cluster reaper."
requires-python = ">=3.10"
keywords = ["matchmaking", "games", "health-check", "metrics", "harness", "gke"]
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
    "Topic :: Games/Entertainment",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "protobuf",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
matchcore-reaper = "matchcore.reaper_cli:main"

[tool.hatch.build.targets.wheel]
packages = ["matchcore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
