"""
IRD Inventory - Backend Service

FastAPI service tracking IRD receivers, their linked equipment records, the
equipment type catalog and contacts.
"""

__version__ = "0.1.0"
