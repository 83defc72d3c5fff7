"""
Notification Layer.

This package mirrors failure and retry status messages to an external
webhook so that unattended runs can be monitored.
"""

from .webhook import WebhookNotifier

__all__ = ["WebhookNotifier"]
