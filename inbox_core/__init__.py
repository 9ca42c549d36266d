"""
Inbox assignment and campaign state service
"""
__version__ = "0.1.0"
