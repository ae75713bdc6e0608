from fastapi import Query

from app.core.config import settings
from app.core.database import get_db  # noqa: F401


class PageParams:
    def __init__(
        self,
        page: int = Query(0, ge=0),
        size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    ):
        self.page = page
        self.size = size
