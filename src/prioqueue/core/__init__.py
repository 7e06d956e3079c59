"""Ports and application state shared by the queue and the console."""
