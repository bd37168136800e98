"""SQLAlchemy-backed repository helpers.

Helpers operate on an ``AsyncSession`` and only flush; committing is left to
the calling service so that related writes land in one transaction.
"""
