"""Authenticated HTTP access to the generation API."""
