"""Haru Hanjul - reading tracker core

- Data models (book.py)
- Library store (library.py)
- Reading log and progress engine (reading_log.py)
- Database handle (database.py)
"""
