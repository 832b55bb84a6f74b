[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "horm_manage"
version = "0.1.0"
description = "Management layer for a data-access platform: users, products, apps, databases, tables and plugins stored in SQLite."
requires-python = ">=3.10"
dependencies = []
keywords = ["database", "management", "membership", "plugins", "sqlite"]
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
    "Topic :: Database :: Front-Ends",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["horm_manage"]

[tool.pytest.ini_options]
addopts = "-ra"
