"""
Billing maintenance jobs: scheduled tenant backups with retention pruning,
and the trial expiry / overdue invoice check.
"""

__version__ = "1.0.0"
