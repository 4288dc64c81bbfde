[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gones"
version = "0.1.0"
description = "NES emulator core components and command-line ROM utilities"
requires-python = ">=3.11"
keywords = ["nes", "emulator", "ines", "chr", "game-genie", "apu", "mapper"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Games/Entertainment",
]
dependencies = [
    "pillow",
    "pyyaml",
    "tomli-w",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
nesutil = "gones.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["gones"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
