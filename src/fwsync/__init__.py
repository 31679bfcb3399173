"""
fwsync - Firewall rule synchronization tool.

Reconciles a host firewall's live rule set with a desired state
previously captured to a CSV file. Rules are created, updated or
disabled, never deleted.
"""

__version__ = "1.2.0"
__author__ = "fwsync Team"
