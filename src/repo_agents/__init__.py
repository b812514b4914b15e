"""Admission control and progress reporting for GitHub repository agents."""

__version__ = "0.1.0"
