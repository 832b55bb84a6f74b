"""Applications: creation, managers, secrets and listings."""

from __future__ import annotations

import hashlib
import random
import secrets
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from horm_manage.accounts import is_manager, user_ids, users_from_map
from horm_manage.apps_repo import AppRepository
from horm_manage.models import AppInfo, Database, ErrorCode, ManageError, Status, UserBase
from horm_manage.users_repo import UserRepository


@dataclass
class AppBase:
    appid: int = 0
    name: str = ""
    intro: str = ""
    is_manager: bool = False
    creator: UserBase | None = None
    manager: list[UserBase] = field(default_factory=list)
    status: int = 0
    created_at: int = 0
    updated_at: int = 0


@dataclass
class AppList:
    total: int = 0
    total_page: int = 0
    page: int = 0
    size: int = 0
    apps: list[AppBase] = field(default_factory=list)


@dataclass
class AppDetail:
    app: AppBase
    secret: str = ""


def generate_app_id(store: Database) -> int:
    """A new appid: 1, six sequence digits and two random digits."""
    seq = UserRepository(store).next_sequence() % 1000000
    return int(f"1{seq:06d}{random.randrange(99):02d}")


def generate_app_secret() -> str:
    seed = f"{int(time.time() * 1000)}_{secrets.randbelow(999999999)}"
    return hashlib.md5(seed.encode("utf-8")).hexdigest()


def require_app_manager(store: Database, user_id: int, appid: int) -> AppInfo:
    """Return the app, raising unless it exists and the user manages it."""
    app = AppRepository(store).get(appid)
    if app is None:
        raise ManageError(ErrorCode.NOT_FIND_APP, f"not find app [{appid}]")
    if user_id not in user_ids(app.manager):
        raise ManageError(
            ErrorCode.MEMBER_NOT_MANAGER, f"user is not manager of app [{app.name}]"
        )
    return app


def appids_of(apps: Iterable[AppInfo]) -> list[int]:
    return [app.appid for app in apps]


def app_base(
    user_id: int, app: AppInfo | None, user_map: Mapping[int, UserBase] | None
) -> AppBase | None:
    """The listing view of an app, as seen by the given user."""
    if app is None or user_map is None:
        return None
    return AppBase(
        appid=app.appid,
        name=app.name,
        intro=app.intro,
        is_manager=is_manager(user_id, app.manager),
        creator=user_map.get(app.creator),
        manager=users_from_map(user_map, user_ids(app.manager)),
        status=app.status,
        created_at=int(app.created_at.timestamp()),
        updated_at=int(app.updated_at.timestamp()),
    )


def find_app(apps: Iterable[AppInfo], appid: int) -> AppInfo | None:
    return next((app for app in apps if app.appid == appid), None)


def add_app(
    store: Database, user_id: int, name: str, intro: str, managers: Iterable[int] = ()
) -> int:
    """Create an online app managed by the given users and its creator; return the appid."""
    manager_ids = list(managers)
    if user_id not in manager_ids:
        manager_ids.append(user_id)
    appid = generate_app_id(store)
    app = AppInfo(
        appid=appid,
        name=name,
        secret=generate_app_secret(),
        intro=intro,
        creator=user_id,
        manager=",".join(str(uid) for uid in manager_ids),
        status=Status.ONLINE,
    )
    AppRepository(store).add(app)
    return appid


def update_app(store: Database, user_id: int, appid: int, name: str, intro: str) -> None:
    require_app_manager(store, user_id, appid)
    AppRepository(store).update_by_id(appid, {"name": name, "intro": intro})


def reset_app_secret(store: Database, user_id: int, appid: int) -> str:
    """Give the app a new secret and return it."""
    require_app_manager(store, user_id, appid)
    secret = generate_app_secret()
    AppRepository(store).update_by_id(appid, {"secret": secret})
    return secret


def update_app_status(store: Database, user_id: int, appid: int, status: int) -> None:
    require_app_manager(store, user_id, appid)
    AppRepository(store).update_by_id(appid, {"status": status})


def maintain_app_manager(
    store: Database, user_id: int, appid: int, managers: Iterable[int]
) -> None:
    """Replace the app's managers with the given users, repeats removed."""
    require_app_manager(store, user_id, appid)
    unique = list(dict.fromkeys(managers))
    AppRepository(store).update_by_id(appid, {"manager": ",".join(str(u) for u in unique)})


def app_list(store: Database, user_id: int, page: int, size: int) -> AppList:
    """Online apps and the user's own offline apps, one page of them."""
    info, apps = AppRepository(store).list_visible(user_id, page, size)
    ids: list[int] = []
    for app in apps:
        ids.extend(user_ids(app.creator, app.manager))
    user_map = UserRepository(store).bases_map_by_ids(ids)
    return AppList(
        total=info.total,
        total_page=info.total_page,
        page=page,
        size=size,
        apps=[app_base(user_id, app, user_map) for app in apps],
    )


def app_detail(store: Database, user_id: int, appid: int) -> AppDetail:
    """The app with its secret; only its managers may see it."""
    app = require_app_manager(store, user_id, appid)
    user_map = UserRepository(store).bases_map_by_ids(user_ids(app.creator, app.manager))
    return AppDetail(app=app_base(user_id, app, user_map), secret=app.secret)