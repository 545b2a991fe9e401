# tests/__init__.py
"""
Expose common test utilities so tests can import directly:
    from tests import make_listing, make_filters, make_catalogue
"""

from .utils import FIXED_NOW, make_catalogue, make_filters, make_listing, sample_listings

__all__ = ["FIXED_NOW", "make_listing", "make_filters", "make_catalogue", "sample_listings"]
