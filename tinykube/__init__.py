"""A small container orchestrator: API objects, a REST API, a replica set controller and a kubelet."""

__version__ = "0.1.0"