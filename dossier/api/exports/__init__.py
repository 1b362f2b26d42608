"""Export request and download resources."""
