[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "waymux"
version = "0.1.0"
description = "A daemon and wire protocol for starting Wayland compositor sessions for other users inside a host session"
requires-python = ">=3.10"
dependencies = []
keywords = ["wayland", "compositor", "session", "multiplexer", "daemon", "unix-socket"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Desktop Environment",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
waymux-daemon = "waymux.daemon:main"

[tool.hatch.build.targets.wheel]
packages = ["waymux"]

[tool.pytest.ini_options]
addopts = "-ra"
