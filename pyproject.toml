[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tinykube"
version = "0.1.0"
description = "A small container orchestrator: API objects, a REST API as a WSGI application, a replica set controller and a node agent."
requires-python = ">=3.10"
keywords = ["orchestration", "containers", "replicaset", "kubelet", "rest", "wsgi"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Clustering",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
]
dependencies = [
    "werkzeug",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["tinykube"]

[tool.pytest.ini_options]
addopts = "-ra"
