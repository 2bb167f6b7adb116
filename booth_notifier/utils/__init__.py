"""
Shared utilities for the BOOTH notifier: structured logging and the error
taxonomy used across components.
"""
