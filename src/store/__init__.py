"""Storage layer.

This module keeps identifier-keyed metadata records and write locks.
It also persists store snapshots for the compatibility corpus.
"""
