[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "udpfileserver"
version = "0.1.0"
description = "A small UDP file server that opens, reads, writes and truncates files under a base directory"
requires-python = ">=3.10"
dependencies = []
keywords = ["udp", "file server", "remote files", "datagram"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: File Transfer Protocol (FTP)",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
udpfileserver = "udpfileserver.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["udpfileserver"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
