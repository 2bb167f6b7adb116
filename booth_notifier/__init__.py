"""
BOOTH New Item Notifier

A monitoring service that watches the BOOTH marketplace for newly listed
items, matches them against per-channel notification filters, and delivers
alerts to Discord servers.
"""

__version__ = "0.1.0"
__author__ = "BOOTH Notifier Team"
