"""
Public read of shared books. No auth: the share id is the capability.
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storybook.db.session import get_db
from storybook.schemas.books import SharedBookOut
from storybook.services.books.service import BookService

router = APIRouter(prefix="/shared", tags=["shared"])


@router.get("/{share_id}", response_model=SharedBookOut)
def get_shared_book(share_id: str, db: Session = Depends(get_db)):
    book = BookService(db).get_shared(share_id)
    if book is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"success": False, "error": "Shared book not found or not ready."},
        )
    return book
