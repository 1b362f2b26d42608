"""Podcast request, status and audio resources."""
