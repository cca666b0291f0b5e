#!/usr/bin/env python3
"""
Create a user with a starting credit balance and print an API bearer token.
Run from the project root: python -m scripts.create_user <email> [subscription_credits] [purchased_credits]
"""
import os
import sys

# project root on PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from storybook.db.session import SessionLocal
from storybook.models.user import User
from storybook.services.auth.tokens import create_access_token


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    email = sys.argv[1]
    subscription = int(sys.argv[2]) if len(sys.argv) > 2 else 0
    purchased = int(sys.argv[3]) if len(sys.argv) > 3 else 0
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).one_or_none()
        if user is None:
            user = User(email=email)
        user.subscription_credits = subscription
        user.purchased_credits = purchased
        db.add(user)
        db.commit()
        db.refresh(user)
        print(f"User {user.id} ({email}): {subscription} subscription / {purchased} purchased credits")
        print(f"Token: {create_access_token(user.id)}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
