[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kubeprov"
version = "0.1.0"
description = "Helm values and provisioning helpers for Kubernetes clusters on OpenStack and virtual clusters"
requires-python = ">=3.10"
keywords = ["kubernetes", "helm", "openstack", "cluster-api", "vcluster", "provisioning"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Clustering",
]
dependencies = [
    "pyyaml",
    "semver",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["kubeprov"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
