"""
Authentication package for the Grocery Store auth client.

This package contains secure storage for the access/refresh token pair.
"""
