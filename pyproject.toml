[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "aegiskit"
version = "0.5.1"
description = "Chat-bot support toolkit: an incremental Redis protocol parser, blocking and asyncio Redis clients, a Redis-backed key store, DogStatsD metrics and small text utilities."
requires-python = ">=3.10"
dependencies = []
keywords = ["redis", "resp", "statsd", "dogstatsd", "chat", "bot", "pubsub"]
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
    "Framework :: AsyncIO",
    "Topic :: Communications :: Chat",
    "Topic :: Database :: Front-Ends",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[tool.hatch.build.targets.wheel]
packages = ["aegiskit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
