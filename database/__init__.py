"""
database — ORM models and async session factory.
"""
