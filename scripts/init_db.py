#!/usr/bin/env python3
"""
Create all tables (users, credit_usage, books, book_pages).
Run from the project root: python -m scripts.init_db
or: PYTHONPATH=. python scripts/init_db.py
"""
import os
import sys

# project root on PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import storybook.models  # noqa: F401  registers tables on Base.metadata
from storybook.db.base import Base
from storybook.db.session import engine


def main():
    Base.metadata.create_all(bind=engine)
    print("Tables: " + ", ".join(sorted(Base.metadata.tables)))


if __name__ == "__main__":
    main()
