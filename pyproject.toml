[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "aegischain"
version = "0.1.0"
description = "Settlement-layer building blocks: Borsh codecs, withdrawal proofs, contract handlers and a fork-choice block tree"
requires-python = ">=3.10"
dependencies = []
keywords = ["blockchain", "borsh", "merkle", "fork-choice", "smart-contracts", "bridge"]
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
    "Topic :: System :: Distributed Computing",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[tool.hatch.build.targets.wheel]
packages = ["aegischain"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
