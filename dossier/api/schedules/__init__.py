"""Schedule resources."""
