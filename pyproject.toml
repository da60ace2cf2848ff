[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "titandb"
version = "0.1.0"
description = "Redis-style strings, sets, hashes and lists stored on an ordered transactional key-value store"
requires-python = ">=3.10"
dependencies = []
keywords = ["redis", "key-value", "database", "data-structures", "transactions"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["titandb"]

[tool.pytest.ini_options]
addopts = "-ra"
