from pageplus.core.logging import current_tags, setup_logging, tool_scope, turn_scope
from pageplus.core.token_counter import HeuristicTokenCounter

__all__ = [
    "HeuristicTokenCounter",
    "current_tags",
    "setup_logging",
    "tool_scope",
    "turn_scope",
]
