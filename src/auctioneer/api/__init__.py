"""HTTP API for Auctioneer."""

from auctioneer.api.app import create_app

__all__ = ["create_app"]
