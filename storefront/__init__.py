"""Session and request security core for the Lush Milk storefront."""

__version__ = "1.0.0"
