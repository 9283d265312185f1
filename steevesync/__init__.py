"""Main Steeve-Sync package"""

__version__ = "0.1.0"
