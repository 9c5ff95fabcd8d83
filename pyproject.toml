[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mbusmeter"
version = "0.1.0"
description = "Read wired M-Bus meters over a serial line and decode their variable data blocks"
requires-python = ">=3.10"
keywords = ["m-bus", "mbus", "meter", "heat meter", "water meter", "serial"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Interface Engine/Protocol Translator",
    "Topic :: Home Automation",
    "Topic :: Terminals :: Serial",
]
dependencies = [
    "pyserial>=3.5",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
mbusmeter = "mbusmeter.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["mbusmeter"]

[tool.hatch.build.targets.sdist]
include = [
    "mbusmeter",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"
