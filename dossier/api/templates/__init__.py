"""Report template resources."""
