"""Command-line interface for Auctioneer."""
