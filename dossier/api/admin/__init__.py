"""Operator resources."""
