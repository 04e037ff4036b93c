[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mdtools"
version = "0.2.0"
description = "Sega Mega Drive sprite mappings, DPLCs, FM voices and level chunk splitting"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "sega",
    "mega drive",
    "genesis",
    "sprite mappings",
    "dplc",
    "smps",
    "fm voice",
    "level chunks",
]
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
    "Topic :: Games/Entertainment",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
mdtools-chunk-splitter = "mdtools.chunk_splitter:main"

[tool.hatch.build.targets.wheel]
packages = ["mdtools"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
