"""
porter Test Suite
=================

Test organization mirrors the source code structure:
    tests/
    ├── test_core/          → porter.core (config, models, versioning, urls, errors)
    ├── test_cache/         → porter.cache (memory, persistent, factory)
    ├── test_orchestration/ → porter.orchestration (formats, retry/timeout, manifests, events)
    ├── test_loaders/       → porter.loaders (native, sandbox, UI, headless, factory)
    ├── test_integration/   → End-to-end Navigator flows
    ├── test_navigator.py   → porter.navigator
    └── conftest.py         → Shared pytest fixtures

Running Tests:
    pytest                          # Run all tests
    pytest tests/test_cache/        # Run only cache tests
"""
