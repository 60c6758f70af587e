"""Order lifecycle and scan scheduling engine."""
