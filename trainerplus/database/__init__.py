from trainerplus.database.db import db

__all__ = ["db"]
