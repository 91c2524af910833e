"""Feed retrieval and publish run orchestration.

This package fetches raw aggregates and drives them through validation,
indexing, and snapshot promotion.
"""
