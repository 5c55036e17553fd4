"""Event queuing module for the analytics client."""

from .event_queue import EventQueue, OverflowPolicy, QueueConfig

__all__ = ["EventQueue", "OverflowPolicy", "QueueConfig"]
