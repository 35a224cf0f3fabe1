"""storesync backend package."""
