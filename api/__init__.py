"""
api — application-wide middleware.
"""
