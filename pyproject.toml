[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nixanalysis"
version = "0.1.0"
description = "Semantic analysis of lowered Nix modules: name resolution, module kinds, liveness checks and file references"
requires-python = ">=3.10"
dependencies = []
keywords = ["nix", "static-analysis", "name-resolution", "diagnostics", "linter"]
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
    "Topic :: Software Development :: Quality Assurance",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["nixanalysis"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
