from __future__ import annotations


class PageBridgeError(RuntimeError):
    """The page runtime could not be reached or reported a failure."""


class PageBridgeTimeout(PageBridgeError, TimeoutError):
    def __init__(self, action: str, timeout_s: float) -> None:
        super().__init__(f"{action} did not respond within {timeout_s:g}s")
        self.action = action
        self.timeout_s = timeout_s


__all__ = ["PageBridgeError", "PageBridgeTimeout"]
