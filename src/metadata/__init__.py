"""Metadata validation and decomposition.

This package authenticates signed aggregates and splits them into
per-entity fragments addressable by entityID and endpoint location.
"""
