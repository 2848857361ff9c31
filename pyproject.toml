[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "palletsim"
version = "0.1.0"
description = "In-memory simulation of blockchain runtime pallets, an ERC-20 contract and an off-chain worker"
requires-python = ">=3.10"
dependencies = []
keywords = ["blockchain", "pallet", "runtime", "erc20", "simulation", "offchain-worker"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["palletsim"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
