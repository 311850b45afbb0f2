"""Auctioneer - task/agent allocation engine for the personal dashboard."""

__version__ = "0.1.0"
