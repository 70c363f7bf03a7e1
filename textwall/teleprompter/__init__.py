"""Timed scrolling-text display with fractional line accumulation."""
