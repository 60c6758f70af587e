"""Polymarket API clients and the market data gateway."""
