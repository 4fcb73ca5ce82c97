"""Internal helpers of the odoo-catalog-migrator library."""
