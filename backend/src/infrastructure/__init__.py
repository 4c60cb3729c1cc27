"""Adapters for external systems (supplier service, event transport)."""
