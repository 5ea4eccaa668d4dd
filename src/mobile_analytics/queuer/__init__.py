"""Persisted event queue for the analytics client."""

from .event_queue import EventQueue, restore_events

__all__ = ["EventQueue", "restore_events"]
