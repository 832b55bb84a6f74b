"""Plugins: registration, configuration items and scheduling defaults."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from horm_manage.accounts import user_ids, users_from_map
from horm_manage.models import Database, PageInfo, Plugin, PluginConfig, Status, UserBase
from horm_manage.plugins_repo import PluginConfigRepository, PluginRepository
from horm_manage.users_repo import UserRepository

PRE_PLUGIN = 1
POST_PLUGIN = 2
DEFER_PLUGIN = 3

PLUGIN_SOURCE_OFFICIAL = 1
PLUGIN_SOURCE_PRIVATE = 2

ACTION_TYPE_EXEC = 1
ACTION_TYPE_SKIP = 2
COND_TYPE_ANY = 1
COND_TYPE_ALL = 2


@dataclass
class AppRule:
    act_type: int = ACTION_TYPE_EXEC
    app_ids: list[int] = field(default_factory=list)


@dataclass
class CustomRule:
    act_type: int = ACTION_TYPE_EXEC
    rule_type: int = COND_TYPE_ANY
    rules: list = field(default_factory=list)


@dataclass
class ScheduleConfig:
    """When and how a plugin runs for a request."""

    is_async: bool = False
    skip_error: bool = False
    timeout: int = 0
    request_source: list[str] = field(default_factory=list)
    op_type: list[str] = field(default_factory=list)
    gray_scale: int = 0
    app_rule: AppRule | None = None
    custom_rule: CustomRule | None = None


@dataclass
class PluginSummary:
    id: int = 0
    name: str = ""
    intro: str = ""
    version: list[int] = field(default_factory=list)
    func: str = ""
    support_types: list[int] = field(default_factory=list)
    online: int = 0
    source: int = 0
    desc: str = ""
    creator: UserBase | None = None
    manager: list[UserBase] = field(default_factory=list)
    created_at: int = 0
    updated_at: int = 0


def _split_ints(text: str) -> list[int]:
    return [int(part) for part in text.split(",") if part.strip()]


def _join(values: Iterable[int]) -> str:
    return ",".join(str(v) for v in values)


def plugin_types(text: str) -> list[int]:
    """The plugin kinds in a comma separated list; empty means every kind."""
    if not text:
        return [PRE_PLUGIN, POST_PLUGIN, DEFER_PLUGIN]
    return _split_ints(text)


def plugin_type_desc(kind: int) -> str:
    if kind == PRE_PLUGIN:
        return "pre-plugin"
    if kind == POST_PLUGIN:
        return "post-plugin"
    return "defer-plugin"


def default_schedule_config() -> ScheduleConfig:
    return ScheduleConfig(
        is_async=False,
        skip_error=False,
        timeout=1000,
        request_source=["api", "web"],
        op_type=["read", "mod", "del"],
        gray_scale=100,
        app_rule=AppRule(act_type=ACTION_TYPE_EXEC, app_ids=[]),
        custom_rule=CustomRule(act_type=ACTION_TYPE_EXEC, rule_type=COND_TYPE_ANY, rules=[]),
    )


def plugins_by_id(plugins: Iterable[Plugin]) -> dict[int, Plugin]:
    return {plugin.id: plugin for plugin in plugins}


def configs_by_plugin_version(configs: Iterable[PluginConfig]) -> dict[str, list[PluginConfig]]:
    """Configs grouped under "<plugin id>_<plugin version>", in order."""
    grouped: dict[str, list[PluginConfig]] = {}
    for config in configs:
        grouped.setdefault(f"{config.plugin_id}_{config.plugin_version}", []).append(config)
    return grouped


def add_plugin(
    store: Database,
    user_id: int,
    name: str,
    intro: str,
    func: str,
    support_types: Iterable[int] = (),
    desc: str = "",
) -> int:
    """Register an online private plugin managed by its creator; return its id."""
    types = list(support_types)
    plugin = Plugin(
        name=name,
        intro=intro,
        version="",
        func=func,
        online=Status.ONLINE,
        source=PLUGIN_SOURCE_PRIVATE,
        desc=desc,
        creator=user_id,
        manager=str(user_id),
        support_types=_join(types) if types else "",
    )
    return PluginRepository(store).add(plugin)


def update_plugin(
    store: Database,
    user_id: int,
    plugin_id: int,
    name: str,
    intro: str,
    support_types: Iterable[int],
    desc: str,
) -> None:
    PluginRepository(store).update_by_id(
        plugin_id,
        {"name": name, "intro": intro, "support_types": _join(support_types), "desc": desc},
    )


def replace_plugin_config(store: Database, user_id: int, config: PluginConfig) -> None:
    """Add or overwrite a configuration item of a plugin version."""
    PluginConfigRepository(store).replace(config)


def delete_plugin_config(store: Database, user_id: int, plugin_id: int, version: int, key: str) -> None:
    PluginConfigRepository(store).delete_by_key(plugin_id, version, key)


def plugin_list(store: Database, page: int, size: int) -> tuple[PageInfo, list[PluginSummary]]:
    """One page of plugins, newest first, with their creators and managers."""
    info, plugins = PluginRepository(store).list(page, size)
    ids: list[int] = []
    for plugin in plugins:
        ids.extend(user_ids(plugin.creator, plugin.manager))
    bases = UserRepository(store).bases_map_by_ids(ids)
    summaries = [
        PluginSummary(
            id=plugin.id,
            name=plugin.name,
            intro=plugin.intro,
            version=_split_ints(plugin.version),
            func=plugin.func,
            support_types=plugin_types(plugin.support_types),
            online=plugin.online,
            source=plugin.source,
            desc=plugin.desc,
            creator=bases.get(plugin.creator),
            manager=users_from_map(bases, user_ids(plugin.manager)),
            created_at=int(plugin.created_at.timestamp()),
            updated_at=int(plugin.updated_at.timestamp()),
        )
        for plugin in plugins
    ]
    return info, summaries


def plugin_configs(store: Database, plugin_id: int, version: int) -> list[PluginConfig]:
    return PluginConfigRepository(store).list(plugin_id, version)