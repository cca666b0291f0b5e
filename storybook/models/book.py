from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from storybook.db.base import Base


class Book(Base):
    __tablename__ = "books"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False, default="Generating Story...")
    original_prompt = Column(Text, nullable=True)
    short_description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="pending", index=True)
    credits_cost = Column(Integer, nullable=False)
    error_message = Column(String, nullable=True)
    # public read-only link; set on first share
    share_id = Column(String, nullable=True, unique=True, index=True)

    # Cover is page -1: not a book_pages row, its render state lives here
    cover_image_prompt = Column(Text, nullable=True)
    cover_status = Column(String, nullable=False, default="pending")
    cover_image_url = Column(String, nullable=True)
    cover_storage_path = Column(String, nullable=True)
    cover_run_id = Column(String, nullable=True)  # renderer run id, kept for manual reconciliation
    cover_error = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    pages = relationship(
        "BookPage",
        back_populates="book",
        cascade="all, delete-orphan",
        order_by="BookPage.page_number",
    )


class BookPage(Base):
    __tablename__ = "book_pages"
    __table_args__ = (UniqueConstraint("book_id", "page_number", name="uq_book_pages_book_page_number"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    book_id = Column(String, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    page_number = Column(Integer, nullable=False)  # 1..N, dense
    text = Column(Text, nullable=True)
    image_prompt = Column(Text, nullable=True)
    generation_status = Column(String, nullable=False, default="pending")
    image_url = Column(String, nullable=True)
    storage_path = Column(String, nullable=True)
    run_id = Column(String, nullable=True)
    last_error = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    book = relationship("Book", back_populates="pages")
