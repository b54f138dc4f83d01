"""
Core modules for Document Ledger.

This package contains content hashing, the error taxonomy and the
ingestion pipeline.
"""
