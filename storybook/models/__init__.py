"""
ORM models. Importing this package registers every table on Base.metadata.
"""
from .book import Book, BookPage
from .credit_usage import CreditUsage
from .user import User

__all__ = ["Book", "BookPage", "CreditUsage", "User"]
