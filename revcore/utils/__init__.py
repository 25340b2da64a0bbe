"""Shared helpers: the Signal observer and async timeout wrappers."""
