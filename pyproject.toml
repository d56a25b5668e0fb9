[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chip9"
version = "0.1.0"
description = "A CHIP-8 virtual machine with a small pygame front end"
requires-python = ">=3.10"
dependencies = [
    "pygame",
]
keywords = ["chip-8", "chip8", "emulator", "interpreter", "retro"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: X11 Applications",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
chip9 = "chip9.app:main"

[tool.hatch.build.targets.wheel]
packages = ["chip9"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
