[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "regroute"
version = "0.1.0"
description = "Shortest paths on labelled road networks under regular-language label constraints"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "shortest path",
    "road network",
    "regular expression",
    "automaton",
    "tree decomposition",
    "label constrained",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: GIS",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["regroute"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
