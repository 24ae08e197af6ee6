from contextlib import asynccontextmanager
from typing import List

from fastapi import APIRouter, Depends, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

import books as book_repository
from config import settings
from database import get_db, init_db
from errors import register_exception_handlers
from logging_config import RequestLoggingMiddleware, logger
from schemas import BOOK_CATEGORIES, Book, BookCreate, BookDeleteResponse, BookUpdate


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"{settings.APP_NAME} book store ready")
    yield


app = FastAPI(title=f"{settings.APP_NAME} Book Store", lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

router = APIRouter(prefix=f"{settings.API_PREFIX}/books", tags=["books"])


@app.get("/health")
async def health():
    return {"status": "healthy"}


@router.get("", response_model=List[Book])
async def list_books(db: Session = Depends(get_db)):
    return book_repository.list_books(db)


@router.get("/categories", response_model=List[str])
async def list_categories():
    return BOOK_CATEGORIES


@router.get("/{book_id}", response_model=Book)
async def get_book(book_id: int, db: Session = Depends(get_db)):
    return book_repository.get_book(db, book_id)


@router.post("", response_model=Book, status_code=status.HTTP_201_CREATED)
async def create_book(book: BookCreate, db: Session = Depends(get_db)):
    return book_repository.create_book(db, book)


@router.patch("/{book_id}", response_model=Book)
async def update_book(book_id: int, patch: BookUpdate, db: Session = Depends(get_db)):
    return book_repository.update_book(db, book_id, patch)


@router.delete("/{book_id}", response_model=BookDeleteResponse)
async def delete_book(book_id: int, db: Session = Depends(get_db)):
    book_repository.delete_book(db, book_id)
    return {"message": "Book deleted", "id": book_id}


app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.BOOKSTORE_PORT)
