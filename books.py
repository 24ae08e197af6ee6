"""Book repository. The catalog is public: no ownership scoping."""

from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from errors import NotFoundError, ValidationError
from logging_config import get_logger
from models import Book as DBBook
from schemas import BookCreate, BookUpdate

logger = get_logger("books")

REQUIRED_FIELDS = ("title", "author", "price", "category", "in_stock")


def list_books(db: Session) -> List[DBBook]:
    return list(db.scalars(select(DBBook).order_by(DBBook.id)))


def get_book(db: Session, book_id: int) -> DBBook:
    book = db.get(DBBook, book_id)
    if book is None:
        raise NotFoundError("Book not found")
    return book


def create_book(db: Session, draft: BookCreate) -> DBBook:
    book = DBBook(**draft.model_dump())
    db.add(book)
    db.commit()
    db.refresh(book)
    logger.info(f"Book created: id={book.id}")
    return book


def update_book(db: Session, book_id: int, patch: BookUpdate) -> DBBook:
    values = patch.model_dump(exclude_unset=True)
    for field in REQUIRED_FIELDS:
        if field in values and values[field] is None:
            raise ValidationError(f"{field} cannot be null", field=field)

    book = get_book(db, book_id)
    for key, value in values.items():
        if value is None:
            value = ""
        setattr(book, key, value)
    db.commit()
    db.refresh(book)
    logger.info(f"Book updated: id={book_id} fields={sorted(values)}")
    return book


def delete_book(db: Session, book_id: int) -> None:
    book = get_book(db, book_id)
    db.delete(book)
    db.commit()
    logger.info(f"Book deleted: id={book_id}")


def replace_catalog(db: Session, drafts: List[BookCreate]) -> List[DBBook]:
    """Drop every book and insert ``drafts``; used by the seed script"""
    db.query(DBBook).delete()
    books = [DBBook(**draft.model_dump()) for draft in drafts]
    db.add_all(books)
    db.commit()
    return books
