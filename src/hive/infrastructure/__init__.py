"""
hive.infrastructure - Infrastructure Layer
============================================

    - artifact_store:  Typed, immutable artifact slots + readiness checks
    - response_cache:  TTL/capacity bounded cache of agent results
    - observability:   In-process metrics registry and span tracer
    - logging:         structlog configuration

Import components from their submodules, e.g.
``from hive.infrastructure.response_cache import ResponseCache``.
"""
