[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "netifmsg"
version = "0.1.0"
description = "Encode and decode rtnetlink and BSD routing-socket interface messages"
requires-python = ">=3.10"
dependencies = []
keywords = ["netlink", "rtnetlink", "sysctl", "routing", "network-interface"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["netifmsg"]

[tool.pytest.ini_options]
addopts = "-ra"
