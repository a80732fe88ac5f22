"""
Grid Index Test Suite

This package contains tests for the hierarchical grid index (builder, HTTP API and client loader).

Structure:
- unit/: Unit tests for individual components
- integration/: Build pipeline, CLI, API and loader working together
- conftest.py: Shared fixtures (markdown content trees, settings)
"""
