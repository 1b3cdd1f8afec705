[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "csiproxy"
version = "0.1.0"
description = "API versioning, named-pipe naming, API group generation planning and end-to-end test helpers for a Windows CSI proxy"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "csi",
    "kubernetes",
    "windows",
    "storage",
    "api-versioning",
    "iscsi",
    "code-generation",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: Software Development :: Code Generators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["csiproxy"]

[tool.hatch.build.targets.sdist]
include = ["csiproxy", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
target-version = "py310"
line-length = 100

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
