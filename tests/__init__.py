"""blockpalette test suite.

Test organization mirrors the blockpalette/ package:
    tests/
    ├── conftest.py          # Shared fixtures and host fakes
    ├── test_core/           # Config, logging, exceptions
    ├── test_host/           # Message catalog and workspace accessor
    ├── test_engine/         # Labels, scoring, catalog, palette engine
    └── test_interaction/    # Block pick flow and drag sequencing
"""
