"""
regru-cli: command-line client for the REG.RU API2 (non-reseller)
"""

__version__ = "0.1.0"
