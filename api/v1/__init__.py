"""
API Version 1
"""
