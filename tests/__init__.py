"""
HIVE Test Suite
===============

Test organization mirrors the source code structure:
    tests/
    ├── test_core/          → Tests for hive.core (state, artifacts, config, models)
    ├── test_agents/        → Tests for hive.agents (base, specialists, registry)
    ├── test_orchestration/ → Tests for hive.orchestration (router, safety, engine)
    ├── test_infrastructure/→ Tests for hive.infrastructure (cache, artifacts, metrics)
    ├── test_integrations/  → Tests for hive.integrations (LLM providers)
    ├── test_facade.py      → End-to-end requests through the Hive facade
    └── conftest.py         → Shared pytest fixtures and sample artifacts

Running Tests:
    pytest                          # Run all tests
    pytest tests/test_orchestration # Run only orchestration tests
    pytest --cov=hive               # Run with coverage report
"""
