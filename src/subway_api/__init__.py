"""Subway Feed Aggregator API."""

__version__ = "0.1.0"
