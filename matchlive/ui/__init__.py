"""
UI package for the live match tracker.

This package contains the Flask server exposing the live command surface.
"""
from .web_app import create_app, run_web_app, WebAppState

__all__ = ["create_app", "run_web_app", "WebAppState"]
