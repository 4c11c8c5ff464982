"""Pricing import pipeline: scrape price lists, transform prices, reconcile the catalog."""

__version__ = "0.1.0"
