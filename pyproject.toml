[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "evtoolkit"
version = "0.1.0"
description = "Event-driven building blocks: byte buffers, stream cutting, thread loops, a descriptor event pool, child processes and pseudo-terminals."
requires-python = ">=3.10"
dependencies = []
keywords = ["event loop", "selectors", "threads", "pty", "buffer", "subprocess"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["evtoolkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
