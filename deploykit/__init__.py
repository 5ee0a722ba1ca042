"""deploykit: build, publish and roll out a containerized service."""

__version__ = "0.1.0"
