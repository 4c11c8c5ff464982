"""Targeted dropdown scraping with a bounded retry policy."""
from pricing_import.services.scraping.matrix_scraper import (
    DropdownMatrixScraper,
    MaterialOption,
    MatrixScrapeResult,
    SourceScrapeResult,
    scrape_dropdown_matrix,
)
from pricing_import.services.scraping.retry import DEFAULT_RETRYABLE_PATTERNS, RetryPolicy

__all__ = [
    "DropdownMatrixScraper",
    "MaterialOption",
    "MatrixScrapeResult",
    "SourceScrapeResult",
    "scrape_dropdown_matrix",
    "DEFAULT_RETRYABLE_PATTERNS",
    "RetryPolicy",
]
