"""Shared services: money and currency helpers."""
