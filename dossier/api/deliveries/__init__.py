"""Delivery scheduling and retry resources."""
