[build-system]
requires = ["setuptools>=64"]
build-backend = "setuptools.build_meta"

[project]
name = "cbfparse"
version = "0.1.0"
description = "Reader for CBF diagnostic description files that exports ECU definitions as JSON"
requires-python = ">=3.10"
dependencies = []
keywords = ["cbf", "caesar", "diagnostics", "ecu", "can", "iso-tp", "uds", "kwp2000"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems :: Controller Area Network (CAN)",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
cbfparse = "cbfparse.cli:main"

[tool.setuptools.packages.find]
include = ["cbfparse*"]

[tool.pytest.ini_options]
addopts = "-ra"
