[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "patclient"
version = "0.17.0"
description = "Winlink client toolkit for amateur radio email: form templates, GPSd positions and connection prehooks."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "winlink",
    "amateur radio",
    "ham radio",
    "email",
    "forms",
    "gpsd",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Ham Radio",
    "Topic :: Communications :: Email",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
patclient = "patclient.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["patclient"]

[tool.hatch.build.targets.sdist]
include = ["patclient", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
