[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tickbus"
version = "0.1.0"
description = "An asyncio job scheduler with in-memory metadata and notification stores wired together by broadcast channels"
requires-python = ">=3.10"
dependencies = []
keywords = ["scheduler", "cron", "jobs", "asyncio", "notifications"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Scheduling",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[tool.hatch.build.targets.wheel]
packages = ["tickbus"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
