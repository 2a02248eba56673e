[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "oblivdb"
version = "0.1.0"
description = "Building blocks for three-party secure database queries: replicated share generation, LowMC, shared tables and query descriptions, oblivious permutations and switching networks."
requires-python = ">=3.10"
keywords = [
    "secure multiparty computation",
    "mpc",
    "lowmc",
    "oblivious permutation",
    "switching network",
    "secret sharing",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security :: Cryptography",
    "Topic :: Database",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["oblivdb"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
