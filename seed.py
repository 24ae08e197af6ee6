"""Reset the book catalog to the demo data: ``python seed.py``"""

import sys

from books import replace_catalog
from database import SessionLocal, init_db
from logging_config import logger
from schemas import BookCreate

BOOK_DATA = [
    {
        "title": "The Redux Handbook",
        "author": "Jane Developer",
        "description": "A comprehensive guide to understanding and using Redux in modern web "
                       "applications. Learn how to manage state effectively in large-scale applications.",
        "price": 29.99,
        "category": "Programming",
        "inStock": True,
        "coverImage": "https://picsum.photos/seed/redux/300/450",
    },
    {
        "title": "React Patterns",
        "author": "John Smith",
        "description": "Master the most common and effective React design patterns. Improve your "
                       "component architecture and application structure.",
        "price": 24.99,
        "category": "Programming",
        "inStock": True,
        "coverImage": "https://picsum.photos/seed/react/300/450",
    },
    {
        "title": "MongoDB for Beginners",
        "author": "Sarah Johnson",
        "description": "Start your journey with MongoDB. This book covers everything from "
                       "installation to advanced queries and database design.",
        "price": 19.99,
        "category": "Database",
        "inStock": True,
        "coverImage": "https://picsum.photos/seed/mongodb/300/450",
    },
    {
        "title": "Full-Stack Development",
        "author": "Michael Wilson",
        "description": "Learn to build complete web applications from front-end to back-end "
                       "using modern JavaScript frameworks and tools.",
        "price": 34.99,
        "category": "Programming",
        "inStock": False,
        "coverImage": "https://picsum.photos/seed/fullstack/300/450",
    },
    {
        "title": "Express.js Deep Dive",
        "author": "David Brown",
        "description": "An in-depth exploration of Express.js for building robust Node.js web "
                       "applications and APIs.",
        "price": 22.99,
        "category": "Programming",
        "inStock": True,
        "coverImage": "https://picsum.photos/seed/express/300/450",
    },
    {
        "title": "State Management Strategies",
        "author": "Emily Clark",
        "description": "Compare different state management libraries including Redux, MobX, "
                       "Context API, and Recoil. Learn when to use each one.",
        "price": 27.99,
        "category": "Programming",
        "inStock": True,
        "coverImage": "https://picsum.photos/seed/state/300/450",
    },
]


def seed_books(db):
    drafts = [BookCreate.model_validate(item) for item in BOOK_DATA]
    books = replace_catalog(db, drafts)
    logger.info(f"{len(books)} books seeded successfully")
    return books


def main() -> int:
    try:
        init_db()
    except Exception:
        return 1

    db = SessionLocal()
    try:
        seed_books(db)
    except Exception:
        logger.exception("Error seeding database")
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
