"""
Test Fixtures

Sample settlement notifications and helpers for building MIME messages.
All data is synthetic.
"""
