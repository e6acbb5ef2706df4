"""
Core engine for the Quote Vault quotation system.
Pricing, quote numbering, formatting, PDF rendering, persistence and delivery.
"""

__version__ = "1.0.0"
