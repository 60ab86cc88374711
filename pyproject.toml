[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "daeutil"
version = "0.1.0"
description = "Linux networking helpers: CIDR prefix trie, routing config model, geodata reader, kernel trace formatting, kernel version detection and sysctl utilities"
requires-python = ">=3.10"
keywords = ["networking", "trie", "cidr", "geodata", "kallsyms", "sysctl", "vdso", "linux"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]
dependencies = [
    "dnspython",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["daeutil"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
