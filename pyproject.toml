[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kustodata"
version = "0.1.0"
description = "Decoding of Kusto query responses (v1 and fragmented v2 frames), column types and trusted endpoint checks"
requires-python = ">=3.10"
dependencies = []
keywords = ["kusto", "data explorer", "query", "kql", "dataset", "json"]
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
    "Topic :: Database :: Front-Ends",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["kustodata"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
