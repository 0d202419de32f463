"""
Brand Group Lookup
------------------
- Resolves an IO ID (out_brands.mongodb_id) to its brand group in the BO database
- One parameterized SELECT per IO ID, LIMIT 1
- Never raises: misses and DB errors come back as Unresolved(reason) and the
  caller keeps going with the "NotFoundBrandGroupID" sentinel
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple

from sqlalchemy import bindparam, column, create_engine, select, table
from sqlalchemy.engine import Connection, Engine, make_url

from config.config_loader import DEFAULT_CONNECT_TIMEOUT, build_db_url
from monthly_uploader.models import BrandGroup, BrandGroupResolution, Resolved, Unresolved

log = logging.getLogger(__name__)

# query_fn(statement, params) -> rows (mappings with brand_group_id / brand_group_name)
QueryFn = Callable[[Any, Dict[str, Any]], Sequence[Mapping[str, Any]]]


# -----------------------
# Database helpers
# -----------------------
def get_engine(cfg: Dict[str, Any], database: str) -> Engine:
    url = build_db_url(cfg, database)
    # mask the (already URL-encoded) password in logs
    log.info(f"Connecting to: {make_url(url).render_as_string(hide_password=True)}")
    connect_timeout = cfg["mysql"].get("connect_timeout", DEFAULT_CONNECT_TIMEOUT)
    return create_engine(
        url,
        future=True,
        pool_pre_ping=True,
        connect_args={"connect_timeout": connect_timeout},
    )


def connection_query_fn(conn: Connection) -> QueryFn:
    """Adapt an open SQLAlchemy connection to the query_fn interface."""

    def query(statement, params):
        return conn.execute(statement, params).mappings().all()

    return query


def build_lookup_query(lookup_db: str):
    """
    SELECT bg.id AS brand_group_id, bg.name AS brand_group_name
    FROM <db>.out_brands AS b LEFT JOIN <db>.brands_groups AS bg ON b.brands_group_id = bg.id
    WHERE b.mongodb_id = :mongodb_id LIMIT 1

    Lightweight table() constructs keep this to a single round trip (no reflection).
    """
    b = table("out_brands", column("mongodb_id"), column("brands_group_id"), schema=lookup_db).alias("b")
    bg = table("brands_groups", column("id"), column("name"), schema=lookup_db).alias("bg")
    return (
        select(
            bg.c.id.label("brand_group_id"),
            bg.c.name.label("brand_group_name"),
        )
        .select_from(b.outerjoin(bg, b.c.brands_group_id == bg.c.id))
        .where(b.c.mongodb_id == bindparam("mongodb_id"))
        .limit(1)
    )


# -----------------------
# Resolution
# -----------------------
def resolve_brand_group(identifier: str, lookup_db: str, query_fn: QueryFn) -> BrandGroupResolution:
    clean_id = identifier.strip()
    try:
        rows = query_fn(build_lookup_query(lookup_db), {"mongodb_id": clean_id})
    except Exception as e:
        log.debug(f"Brand group lookup failed for '{clean_id}': {e}")
        return Unresolved(f"Database error: {e}")

    if not rows:
        return Unresolved(
            f"No rows returned from query for mongodb_id: '{clean_id}' (database: {lookup_db})"
        )

    row = rows[0]
    return Resolved(BrandGroup(id=row["brand_group_id"], name=row["brand_group_name"]))


def resolve_brand_groups(
    identifiers: List[str], lookup_db: str, query_fn: QueryFn
) -> Tuple[Dict[str, BrandGroup], Dict[str, str]]:
    """
    Resolve every identifier in order.
    Returns (identifier -> brand group, identifier -> error message for misses/errors).
    """
    brand_groups: Dict[str, BrandGroup] = {}
    errors: Dict[str, str] = {}
    for identifier in identifiers:
        resolution = resolve_brand_group(identifier, lookup_db, query_fn)
        brand_groups[identifier] = resolution.brand_group
        if resolution.error is not None:
            errors[identifier] = resolution.error
        log.debug(f"IO {identifier!r} -> brand group {resolution.brand_group.id}")
    return brand_groups, errors
