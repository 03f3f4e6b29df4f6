"""
utils — small helpers shared across packages.
"""
