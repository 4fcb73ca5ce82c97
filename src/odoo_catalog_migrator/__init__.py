"""Odoo Catalog Migrator."""

__version__ = "0.1.0"
