from .signal_handler import SignalHandler, get_signal_handler

__all__ = ["SignalHandler", "get_signal_handler"]
