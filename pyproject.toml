[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ctimeta"
version = "0.1.0"
description = "CTI metadata entities, registry, untyped-entity conversion, package cache layout and git-backed package storage"
requires-python = ">=3.10"
keywords = ["cti", "metadata", "registry", "package-cache", "git"]
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
dependencies = [
    "semver>=3.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[tool.hatch.build.targets.wheel]
packages = ["ctimeta"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
