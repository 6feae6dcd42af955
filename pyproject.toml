[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "slorules"
version = "0.1.0"
description = "Generate Prometheus SLO recording and alerting rules from SLO specifications."
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["slo", "sli", "prometheus", "alerting", "monitoring", "error-budget", "openslo"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["slorules"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
