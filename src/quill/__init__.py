"""Quill: multi-agent written-response evaluation."""

__version__ = "0.1.0"
