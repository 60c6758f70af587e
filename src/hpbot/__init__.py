"""hpbot - high-probability outcome bot for Polymarket with a human approval gate."""

__version__ = "0.1.0"
