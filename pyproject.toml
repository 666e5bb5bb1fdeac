[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dualqueue"
version = "1.0.0"
description = "Multi-threaded consumer-producer with dual-priority queues, discard policies and statistics"
requires-python = ">=3.10"
dependencies = []
keywords = ["producer", "consumer", "queue", "priority", "threading", "worker-pool"]
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
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
dualqueue-examples = "dualqueue.examples:main"
dualqueue-benchmark = "dualqueue.benchmark:main"

[tool.hatch.build.targets.wheel]
packages = ["dualqueue"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
