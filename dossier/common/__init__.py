"""Shared helpers used across Dossier packages."""
