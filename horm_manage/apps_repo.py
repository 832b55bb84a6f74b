"""Storage of application records."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from horm_manage.models import AppInfo, Database, PageInfo, Status

APP_TABLE = "tbl_app_info"


class AppRepository:
    """Queries over the application table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def add(self, app: AppInfo) -> int:
        return self._db.insert(APP_TABLE, app)

    def update_by_id(self, appid: int, values: Mapping[str, Any]) -> int:
        return self._db.update(APP_TABLE, {"appid": appid}, values)

    def list_visible(self, user_id: int, page: int, size: int) -> tuple[PageInfo, list[AppInfo]]:
        """Online apps, plus offline apps the user manages, newest first."""
        where = {
            "OR": {
                "status": Status.ONLINE,
                "AND": {
                    "status": Status.OFFLINE,
                    "manager ~": f"%{user_id}%",
                },
            }
        }
        info, rows = self._db.find_all(APP_TABLE, where, ["-appid"], page, size)
        return info, [AppInfo.from_row(row) for row in rows]

    def list_by_appids(self, appids: Iterable[int]) -> list[AppInfo]:
        _, rows = self._db.find_all(APP_TABLE, {"appid": list(appids)})
        return [AppInfo.from_row(row) for row in rows]

    def list_mine(self, user_id: int, keyword: str = "", status: int = 0) -> list[AppInfo]:
        """Apps the user manages, filtered by status and by appid or name keyword."""
        where: dict[str, Any] = {"manager ~": f"%{user_id}%"}
        if status != 0:
            where["status"] = status
        if keyword:
            where["OR"] = {"appid ~": f"%{keyword}%", "name ~": f"%{keyword}%"}
        _, rows = self._db.find_all(APP_TABLE, where, ["-appid"])
        return [AppInfo.from_row(row) for row in rows]

    def get(self, appid: int) -> AppInfo | None:
        row = self._db.find(APP_TABLE, {"appid": appid})
        return AppInfo.from_row(row) if row else None