"""Inbound webhook resources."""
