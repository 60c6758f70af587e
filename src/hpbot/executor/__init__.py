"""Order submission and normalization."""
