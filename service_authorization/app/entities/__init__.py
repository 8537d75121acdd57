"""
Entity graph of an authorization request.
"""
