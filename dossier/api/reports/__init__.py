"""Report lifecycle resources."""
