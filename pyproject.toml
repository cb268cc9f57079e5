[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lockless"
version = "0.1.0"
description = "Concurrency building blocks: broadcast rings, channels, a concurrent hash map, RCU, hazard pointers and cooperative scheduling"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "concurrency",
    "threads",
    "channel",
    "broadcast",
    "rcu",
    "hazard-pointers",
    "concurrent-map",
    "coroutines",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
lockless-channel = "lockless.channel:main"
lockless-coro = "lockless.coro:main"
lockless-fiber = "lockless.fiber:main"
lockless-hazard = "lockless.hazard:main"
lockless-httpd = "lockless.httpd:main"

[tool.hatch.build.targets.wheel]
packages = ["lockless"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
