"""Unified search aggregation across media-management backends."""
