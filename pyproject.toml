[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mdnsengine"
version = "0.1.0"
description = "Multicast DNS message encoding, record caching and service browsing"
requires-python = ">=3.10"
dependencies = []
keywords = ["mdns", "dns-sd", "zeroconf", "service discovery", "dns"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["mdnsengine"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
