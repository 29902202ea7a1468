"""IRD Inventory - business services."""
