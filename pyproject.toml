[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "breaktimer"
version = "0.6.0"
description = "A Wayland break reminder daemon with a socket-controlled helper command"
requires-python = ">=3.10"
dependencies = [
    "pygame",
]
keywords = ["wayland", "break", "timer", "reminder", "systemd", "daemon"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: End Users/Desktop",
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
test = [
    "pytest",
]

[project.scripts]
breaktimer-daemon = "breaktimer.daemon:main"
breaktimer-helper = "breaktimer.helper:main"

[tool.hatch.build.targets.wheel]
packages = ["breaktimer"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
