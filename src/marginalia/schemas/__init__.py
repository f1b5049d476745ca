"""Pydantic schemas for the Marginalia API."""
