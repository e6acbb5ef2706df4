"""
PySide6 desktop wrapper for the Quote Vault quotation system.
"""
