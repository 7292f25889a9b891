[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "canbridge"
version = "0.1.0"
description = "CAN signal codec, DBC parsing, SocketCAN frame I/O and AVTP socket helpers"
requires-python = ">=3.10"
dependencies = []
keywords = ["can", "can-fd", "dbc", "socketcan", "avtp", "tsn", "automotive"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems :: Controller Area Network (CAN)",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["canbridge"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
