"""Trade ledger."""
