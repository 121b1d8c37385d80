"""
Tests Package - Unit and Integration Tests

Test structure:
- tests/unit/ - Fast, isolated unit tests (HTTP faked with httpx.MockTransport)
- tests/integration/ - End-to-end crawl against a fake API
- tests/conftest.py - Shared pytest fixtures
"""
