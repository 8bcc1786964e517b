[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fleetcmd"
version = "0.1.0"
description = "Client-side building blocks for vehicle commands: Fleet API connector, BLE framing, Schnorr/P-256 signatures and a session cache"
requires-python = ">=3.10"
keywords = ["vehicle", "fleet-api", "ble", "schnorr", "p256", "session-cache"]
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
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["fleetcmd"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
