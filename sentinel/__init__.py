"""
Activity Sentinel - background anomaly detection over account activity.

Scans per-account activity, scores it, keeps a persistent watchlist of
suspicious accounts, escalates the ones that stay anomalous, and emits alerts.
"""

__version__ = "0.1.0"
