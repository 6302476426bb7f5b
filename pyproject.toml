[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "relayhttp"
version = "0.1.0"
description = "A pooling HTTP/1.1 client with connection reuse, proxy-aware request forms and retry of canceled requests"
requires-python = ">=3.10"
dependencies = [
    "h11",
]
keywords = ["http", "client", "connection-pool", "keep-alive", "proxy"]
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
    "Topic :: Internet :: WWW/HTTP",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
relayhttp = "relayhttp.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["relayhttp"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
