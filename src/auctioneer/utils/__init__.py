"""Shared helpers for Auctioneer."""
