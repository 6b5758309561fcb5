"""MindfulTimer — a meditation countdown with interval bells and session history."""

__version__ = "0.1.0"
