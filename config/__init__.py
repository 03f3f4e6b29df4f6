"""
config — settings and brandings.
"""
