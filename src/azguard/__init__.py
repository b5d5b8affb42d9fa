"""
azguard - track Azure cloud spending from the command line.

A small, local-first cost tracker for:
- Pulling billing data from the Azure Cost Management API
- Persisting normalized cost records in a local SQLite database
- Summaries, trend analysis and forecasts over the stored history
- Budget alerts evaluated against the current month's spend
"""

__version__ = "0.1.0"
