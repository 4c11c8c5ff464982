"""Pipeline services: extraction, scraping, pricing, catalog reconciliation."""
