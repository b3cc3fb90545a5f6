"""
Ledgerbook - Pydantic Schemas Package

Request/response and import row schemas.
"""
