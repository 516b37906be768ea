from __future__ import annotations

__all__ = [
    "LeaseManager",
    "ToolDependencies",
    "ToolOrchestrator",
    "ToolRegistry",
    "ToolSelector",
    "build_tool_registry",
    "parse_tool_selection",
]


def __getattr__(name: str) -> object:
    # Lazy so provider modules can import the parsing strategies without
    # pulling in the registry, which itself depends on providers.
    if name in {"ToolDependencies", "ToolRegistry", "build_tool_registry"}:
        from pageplus.tools.registry import ToolDependencies, ToolRegistry, build_tool_registry

        return {
            "ToolDependencies": ToolDependencies,
            "ToolRegistry": ToolRegistry,
            "build_tool_registry": build_tool_registry,
        }[name]
    if name == "ToolSelector":
        from pageplus.tools.selector import ToolSelector

        return ToolSelector
    if name == "ToolOrchestrator":
        from pageplus.tools.orchestrator import ToolOrchestrator

        return ToolOrchestrator
    if name == "LeaseManager":
        from pageplus.tools.leases import LeaseManager

        return LeaseManager
    if name == "parse_tool_selection":
        from pageplus.tools.parsing import parse_tool_selection

        return parse_tool_selection
    raise AttributeError(name)
