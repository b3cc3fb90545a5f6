"""
Ledgerbook - Utilities
"""
