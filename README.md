# horm_manage

Management logic for a data-access platform: user accounts, products and
their members, applications, registered databases and tables, users'
collected tables, and plugins with their configuration items.

State lives in SQLite through `horm_manage.models.Database`. Short-lived
values such as e-mail verification codes live in an in-memory
`horm_manage.cache.Cache`. The package has no third-party dependencies.

## Install

```
pip install .
pip install ".[test]"   # with pytest
```

## Modules

- `horm_manage.models` — record dataclasses (`User`, `UserBase`,
  `Product`, `ProductMember`, `AppInfo`, `DBInfo`, `TableInfo`,
  `CollectTable`, `SearchKeyword`, `Plugin`, `PluginConfig`, `PageInfo`),
  the enums `Status`, `ProductRole`, `MemberStatus` and `ExpireType`,
  `ManageError` with its `ErrorCode`, `compile_where` and the `Database`
  store. `Database` creates every table on opening, is thread-safe and can
  be used as a context manager. `find_all` pages results from page 1, ten
  rows per page unless a size is given.
- `horm_manage.cache` — `Cache`, with `get`, `set(key, value, expire)`,
  `delete` and `ttl` (seconds left, or -2 for an absent key).
- Repositories over single tables: `users_repo`, `products_repo`,
  `apps_repo`, `catalog_repo` (databases, tables, collected tables),
  `plugins_repo`, and `search_repo`, which writes search keywords in a
  background thread and retries failed writes.
- Operations:
  - `accounts` — `issue_email_code`, `register`, `login`,
    `reset_password`, `find_users`, `find_users_by_id`, and helpers such as
    `user_ids`, `is_manager` and `expire_time`.
  - `apps` — `add_app`, `update_app`, `reset_app_secret`,
    `update_app_status`, `maintain_app_manager`, `app_list`, `app_detail`.
  - `membership` — product roles (`product_role`,
    `product_real_role_status`, `user_product_role`), `join_product`,
    `approve_member`, `apply_role_change`, `approve_role_change`,
    `remove_member`, `product_member_list`.
  - `products` — `add_product`, `update_product`,
    `maintain_product_manager`, `update_product_status`, `product_list`,
    `product_detail`.
  - `databases` — `add_db`, `update_db_base`, `maintain_db_manager`,
    `update_db_status`, `update_db_network`, `db_base`,
    `db_network_detail`, with `NetworkSettings` for connection settings.
  - `tables` — `add_table`, `update_table_base`, `update_table_status`,
    `update_table_advance`, `table_detail`, `table_advance_config`.
  - `plugins` — `add_plugin`, `update_plugin`, `replace_plugin_config`,
    `delete_plugin_config`, `plugin_list`, `plugin_configs`,
    `default_schedule_config`.
  - `index` — `index_table_list`, `collect_table_list`, `collect_table`.

Operations raise `ManageError` carrying an `ErrorCode` when a rule is
broken, for example when a user who does not manage an application tries
to change it, or when a product name is already taken.

## Example

```python
from horm_manage import accounts, products
from horm_manage.cache import Cache
from horm_manage.models import Database

cache = Cache()
account = "someone@example.com"
password = "password"

with Database(":memory:") as store:
    message = accounts.issue_email_code(cache, account)   # an EmailMessage
    code = cache.get(accounts.EMAIL_CODE_PREFIX + account)

    accounts.register(store, cache, account, code, "Someone", password)
    user = accounts.login(store, account, password, "127.0.0.1")

    product_id = products.add_product(store, user.id, "billing", "billing data")
    detail = products.product_detail(store, user.id, product_id)
    print(detail.info.name, detail.role)
```

## What this package does not do

- It sends no e-mail: `issue_email_code` stores the code in the cache and
  returns the `EmailMessage`; delivering it is up to the caller.
- It has no network API, server or command line; it is a library of
  functions called with a `Database` (and a `Cache` where codes are
  involved).
- It does not handle applications' requests for access to databases or
  tables, the ordering of plugins attached to a table, or workspaces and
  their members.

## Tests

```
pytest
```