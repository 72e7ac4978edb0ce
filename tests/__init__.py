"""
Tests for the ward interview scheduler.

Running Tests:
    pytest tests/ -v

Unit tests never touch a real database or calendar: sessions, the Aurinko
gateway and the language model are replaced with mocks.
"""
