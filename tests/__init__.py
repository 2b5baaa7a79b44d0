"""Test package for the chat stream relay.

Unit tests cover each decoding stage in isolation; integration tests drive
the HTTP surface against a fake upstream.

Structure:
    - unit/: Individual function and class tests
    - integration/: End-to-end API tests
    - data/: Recorded upstream streams

Leverages pytest with pytest-check for soft assertions.
"""
