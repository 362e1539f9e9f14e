[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "distkit"
version = "0.1.0"
description = "Distributed-systems building blocks: a simulated RPC network, Raft consensus, restricted message marshalling, actor refs and key-value wire types."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "raft",
    "consensus",
    "rpc",
    "simulation",
    "actors",
    "marshalling",
    "distributed-systems",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["distkit"]

[tool.hatch.build.targets.sdist]
include = ["distkit", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
