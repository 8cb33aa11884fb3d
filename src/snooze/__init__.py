"""Suspend idle Docker Compose projects and wake them on demand."""

__version__ = "0.1.0"
