"""Haru Hanjul - Services Package

External integrations:
- Google Books catalog lookups
- Shared HTTP client
"""
