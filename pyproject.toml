[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nodeframe"
version = "0.1.0"
description = "Frame configuration files, ordered containers and XML project and message definition loaders for a node-based server framework"
requires-python = ">=3.10"
dependencies = []
keywords = ["configuration", "skip list", "sorted map", "xml", "rpc", "message definitions"]
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
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["nodeframe"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
