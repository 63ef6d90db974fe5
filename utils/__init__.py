"""
Shared helpers for text and date handling.
"""
