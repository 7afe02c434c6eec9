import logging
from sqlalchemy.orm import Session


class BaseService:
    """Holds the request session and a module logger for class-style services."""

    def __init__(self, db: Session):
        self.db = db
        self._logger = logging.getLogger(self.__class__.__module__)
