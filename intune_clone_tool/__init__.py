"""
Intune Clone Tool package exposing CLI and helper modules.
"""

__all__ = [
    "cli",
    "cloners",
    "compliance_clone",
    "config",
    "configuration_clone",
    "discovery",
    "graph_client",
    "logging_utils",
    "models",
    "naming",
    "orchestrator",
    "picker",
    "scope_tags",
    "script_clone",
    "utils",
]
