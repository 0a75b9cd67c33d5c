[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sailo"
version = "0.1.0"
description = "Isolated Docker workspaces for AI coding agents: one container, git clone, branch and port set per task."
requires-python = ">=3.10"
keywords = ["docker", "workspace", "isolation", "ai-agents", "git", "containers"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development",
]
dependencies = [
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[tool.hatch.build.targets.wheel]
packages = ["sailo"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
