"""Dossier: AI report generation with background export, delivery and audio."""
