"""IRD Inventory - core services: config, logging, errors, transactions."""
