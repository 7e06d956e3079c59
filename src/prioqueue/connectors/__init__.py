"""Operator-facing front ends (console REPL)."""
