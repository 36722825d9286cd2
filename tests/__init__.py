"""
Tests for assured jobs.

Redis is simulated with fakeredis, so no server is needed to run them.
"""
