"""Switchboard: multi-provider fan-out and asynchronous job orchestration."""

__version__ = "0.1.0"
