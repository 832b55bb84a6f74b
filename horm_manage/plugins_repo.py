"""Storage of plugins and their configuration items."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from horm_manage.models import Database, ErrorCode, ManageError, PageInfo, Plugin, PluginConfig

PLUGIN_TABLE = "tbl_plugin"
CONFIG_TABLE = "tbl_plugin_config"


class PluginRepository:
    """Queries over the plugin table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def add(self, plugin: Plugin) -> int:
        return self._db.insert(PLUGIN_TABLE, plugin)

    def update_by_id(self, plugin_id: int, values: Mapping[str, Any]) -> int:
        return self._db.update(PLUGIN_TABLE, {"id": plugin_id}, values)

    def list(self, page: int, size: int) -> tuple[PageInfo, list[Plugin]]:
        info, rows = self._db.find_all(PLUGIN_TABLE, None, ["-id"], page, size)
        return info, [Plugin.from_row(row) for row in rows]

    def get_by_ids(self, plugin_ids: Iterable[int]) -> list[Plugin]:
        _, rows = self._db.find_all(PLUGIN_TABLE, {"id": list(plugin_ids)})
        return [Plugin.from_row(row) for row in rows]

    def get_by_id(self, plugin_id: int) -> Plugin | None:
        row = self._db.find(PLUGIN_TABLE, {"id": plugin_id})
        return Plugin.from_row(row) if row else None


class PluginConfigRepository:
    """Queries over plugin configuration items."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def replace(self, config: PluginConfig) -> int:
        return self._db.replace(CONFIG_TABLE, config)

    def delete_by_key(self, plugin_id: int, version: int, key: str) -> int:
        where = {"plugin_id": plugin_id, "plugin_version": version, "key": key}
        return self._db.delete(CONFIG_TABLE, where)

    def list(self, plugin_id: int, version: int) -> list[PluginConfig]:
        where = {"plugin_id": plugin_id, "plugin_version": version}
        _, rows = self._db.find_all(CONFIG_TABLE, where, ["id"])
        return [PluginConfig.from_row(row) for row in rows]

    def list_by_id_versions(self, *args: int) -> list[PluginConfig]:
        """Configs of several plugin versions, given as id, version, id, version..."""
        if len(args) < 2:
            return []
        if len(args) % 2 != 0:
            raise ManageError(
                ErrorCode.SYSTEM, "list_by_id_versions input id/version pairs are invalid"
            )
        pairs = [
            {"plugin_id": plugin_id, "plugin_version": version}
            for plugin_id, version in zip(args[::2], args[1::2])
        ]
        _, rows = self._db.find_all(CONFIG_TABLE, {"OR": pairs}, ["id"])
        return [PluginConfig.from_row(row) for row in rows]