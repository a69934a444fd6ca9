[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "flowspec"
version = "0.1.0"
description = "Typed model, parser and validator for Serverless Workflow DSL documents in JSON or YAML"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["workflow", "serverless", "dsl", "parser", "validation", "yaml", "json"]
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
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
flowspec-validate = "flowspec.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["flowspec"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
