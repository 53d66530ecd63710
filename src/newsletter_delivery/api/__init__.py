"""
Newsletter Delivery HTTP API
"""
