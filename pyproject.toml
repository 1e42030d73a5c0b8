[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zfsexporter"
version = "2.0.0"
description = "Prometheus exporter for ZFS pool and dataset metrics"
requires-python = ">=3.10"
dependencies = []
keywords = ["zfs", "zpool", "prometheus", "exporter", "metrics", "monitoring"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
zfs-exporter = "zfsexporter.exporter:main"

[tool.hatch.build.targets.wheel]
packages = ["zfsexporter"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
