[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bladeoperator"
version = "1.0.0"
description = "Chaos experiment operator logic: ChaosBlade resources, reconciliation, pod sidecar mutation and file-system fault injection"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "chaos-engineering",
    "fault-injection",
    "kubernetes",
    "operator",
    "admission-webhook",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["bladeoperator"]

[tool.hatch.build.targets.sdist]
include = ["bladeoperator", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
