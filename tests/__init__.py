"""
nugget-engine Test Suite.

This package contains all tests for the normalization engine:

- unit/: Tags, URLs, images, media, card type, validation, stores, enrichment
- integration/: Create and edit flows against the in-memory store
- conftest.py: Shared fixtures and test configuration

Run tests with: pytest
Run integration tests only: pytest -m integration
"""
