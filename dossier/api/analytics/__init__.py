"""Dashboard analytics resources."""
