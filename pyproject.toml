[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "restcore"
version = "0.1.0"
description = "Building blocks for an HTTP/1.1 REST client: body readers and writers, a connection pool and JSON mapping of dataclasses"
requires-python = ">=3.10"
dependencies = []
keywords = ["http", "rest", "client", "chunked", "json", "dataclasses", "connection-pool"]
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
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["restcore"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
