"""Snapshot storage and publication.

This package writes content-addressed dataset snapshots and swaps the
live link that query services read from.
"""
