"""Unit tests for individual components in isolation.

Ensures fast execution with no network access.

Coverage:
    - parsing/: Frames, tags, percent-decoding and payload classification
    - streaming/: Sections, composition, decoder, ticker and controller
    - session/: Session store and persistence
    - client/: Upstream client against a mock transport

Follows single responsibility per test function. Leverages pytest-check for
multiple assertions per test.
"""
