"""
Recover Cursor IDE chat history from workspace state databases.
"""

__version__ = "0.1.0"
