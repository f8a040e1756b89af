"""Visualization of cycle results."""
