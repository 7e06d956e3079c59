"""Persistent priority task queue."""
