"""Concurrency building blocks: rings, channels, a concurrent map, RCU and hazard pointers."""

__version__ = "0.1.0"