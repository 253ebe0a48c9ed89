"""Asynchronous state and cache consistency engine."""
