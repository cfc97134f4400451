"""
SCIM User Sync - Reconcile a SCIM directory's users with a CSV user list.

This package creates directory users that appear in the CSV and deletes
directory users that no longer do, reporting a single summary per run.
"""

__version__ = "1.0.0"
__author__ = "SCIM User Sync Team"
