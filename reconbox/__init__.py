"""
reconbox - paced TCP port scanning and host discovery.
"""

__version__ = "0.3.0"
