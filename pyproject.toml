[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "v80smi"
version = "1.0.0"
description = "Library for V80 accelerator cards: design archives, system maps, utilization reports, device listing, queue status and DMA validation"
requires-python = ">=3.10"
dependencies = []
keywords = ["fpga", "v80", "pcie", "qdma", "vrtbin", "hardware"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["v80smi"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
