"""
hive.integrations - External Service Adapters
===============================================

Sub-packages:
    llm/   - Completion providers used by the router and the agents
"""

__all__: list[str] = []
