"""
Local Admin Server — JSON API for managing mirrors.

Usage:
    polyglot admin
    # Serves http://127.0.0.1:5050/api/*
"""

from .server import create_app, run_server

__all__ = ["create_app", "run_server"]
