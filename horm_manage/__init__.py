"""Management of user accounts, products and members, apps, databases, tables and plugins over SQLite."""

__version__ = "0.1.0"