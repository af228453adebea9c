"""
Remote tabular store: keyed fetch, filtered fetch, update and upsert over SQLAlchemy Core.
"""

import json
import sys
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import bindparam, text
from sqlalchemy.exc import DataError, DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from staffdir.database import TABLES, TableSpec
from staffdir.errors import NotFoundError, StoreError, TransientNetworkError, ValidationError


@contextmanager
def converted_store_errors(action: str):
    """Turn driver failures into the portal error taxonomy. Nothing is retried."""
    try:
        yield
    except IntegrityError as e:
        raise ValidationError(f"Could not {action}: the store rejected the change.") from e
    except DataError as e:
        raise ValidationError(f"Could not {action}: a value does not fit its column.") from e
    except (OperationalError, InterfaceError, PoolTimeoutError) as e:
        print(f"[ERROR] Store unavailable during '{action}': {e}", file=sys.stderr)
        raise TransientNetworkError(
            f"Could not {action} because the data store is unreachable. Please try again later."
        ) from e
    except DBAPIError as e:
        print(f"[ERROR] Store error during '{action}': {e}", file=sys.stderr)
        raise StoreError(f"Could not {action}: the data store returned an error.") from e


class TabularStore:
    """Thin row-level access to the portal tables.

    Rows go in and come out as plain dicts. List-valued columns are stored
    as JSON text and decoded on the way out; identifiers are checked against
    the declared table columns before any SQL is built.
    """

    def __init__(self, engine, tables: Optional[Mapping[str, TableSpec]] = None):
        self.engine = engine
        self.tables = dict(tables or TABLES)

    # ── Helpers ──────────────────────────────────────────────────────

    def _spec(self, table: str) -> TableSpec:
        spec = self.tables.get(table)
        if spec is None:
            raise ValidationError(f"Unknown table '{table}'.")
        return spec

    @staticmethod
    def _check_columns(spec: TableSpec, columns: Iterable[str]) -> None:
        unknown = [c for c in columns if c not in spec.columns]
        if unknown:
            raise ValidationError(f"Unknown column(s) for {spec.name}: {', '.join(sorted(unknown))}.")

    @staticmethod
    def _encode(spec: TableSpec, column: str, value: Any) -> Any:
        if column in spec.json_columns and value is not None:
            if isinstance(value, (set, frozenset)):
                value = sorted(value)
            return json.dumps(list(value) if not isinstance(value, str) else [value])
        return value

    @staticmethod
    def _decode(spec: TableSpec, row: Mapping[str, Any]) -> Dict[str, Any]:
        out = dict(row)
        for col in spec.json_columns:
            raw = out.get(col)
            if raw is None:
                out[col] = []
            elif isinstance(raw, str):
                try:
                    loaded = json.loads(raw)
                except ValueError:
                    loaded = raw
                out[col] = [loaded] if isinstance(loaded, str) else list(loaded or [])
            else:
                out[col] = list(raw)
        for col in spec.bool_columns:
            if out.get(col) is not None:
                out[col] = bool(out[col])
        return out

    def _where_key(self, spec: TableSpec, key: Mapping[str, Any]):
        if set(key) != set(spec.key):
            raise ValidationError(f"{spec.name} rows are keyed by ({', '.join(spec.key)}).")
        clause = " AND ".join(f"{c} = :k_{c}" for c in spec.key)
        return clause, {f"k_{c}": key[c] for c in spec.key}

    def _select_one(self, conn, spec: TableSpec, key: Mapping[str, Any]) -> Dict[str, Any]:
        clause, params = self._where_key(spec, key)
        sql = text(f"SELECT {', '.join(spec.columns)} FROM {spec.name} WHERE {clause}")
        row = conn.execute(sql, params).mappings().first()
        if not row:
            raise NotFoundError(f"No {spec.name} record matches {dict(key)}.")
        return self._decode(spec, row)

    # ── Operations ───────────────────────────────────────────────────

    def fetch_one(self, table: str, key: Mapping[str, Any]) -> Dict[str, Any]:
        """Keyed single-row fetch; raises NotFoundError when nothing matches."""
        spec = self._spec(table)
        with converted_store_errors(f"load {table}"):
            with self.engine.connect() as conn:
                return self._select_one(conn, spec, key)

    def fetch_many(
        self,
        table: str,
        equals: Optional[Mapping[str, Any]] = None,
        any_of: Optional[Mapping[str, Iterable[Any]]] = None,
        order_by: Sequence[str] = (),
    ) -> List[Dict[str, Any]]:
        """Filtered multi-row fetch with equality and set-membership predicates."""
        spec = self._spec(table)
        equals = dict(equals or {})
        any_of = {c: list(v) for c, v in (any_of or {}).items()}
        self._check_columns(spec, list(equals) + list(any_of) + list(order_by))

        # an empty IN-list matches nothing; skip the round trip
        if any(not v for v in any_of.values()):
            return []

        clauses, params = [], {}
        for col, val in equals.items():
            clauses.append(f"{col} = :eq_{col}")
            params[f"eq_{col}"] = self._encode(spec, col, val)
        for col, vals in any_of.items():
            clauses.append(f"{col} IN :in_{col}")
            params[f"in_{col}"] = [self._encode(spec, col, v) for v in vals]

        sql = f"SELECT {', '.join(spec.columns)} FROM {spec.name}"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        if order_by:
            sql += " ORDER BY " + ", ".join(order_by)
        stmt = text(sql).bindparams(*[bindparam(f"in_{c}", expanding=True) for c in any_of])

        with converted_store_errors(f"load {table}"):
            with self.engine.connect() as conn:
                rows = conn.execute(stmt, params).mappings().all()
        return [self._decode(spec, r) for r in rows]

    def update(self, table: str, key: Mapping[str, Any], values: Mapping[str, Any]) -> Dict[str, Any]:
        """Update one keyed row and return it as stored."""
        spec = self._spec(table)
        if not values:
            raise ValidationError("Nothing to update.")
        self._check_columns(spec, values)
        clause, params = self._where_key(spec, key)
        assignments = ", ".join(f"{c} = :v_{c}" for c in values)
        params.update({f"v_{c}": self._encode(spec, c, v) for c, v in values.items()})
        sql = text(f"UPDATE {spec.name} SET {assignments} WHERE {clause}")

        with converted_store_errors(f"update {table}"):
            with self.engine.begin() as conn:
                result = conn.execute(sql, params)
                if result.rowcount == 0:
                    raise NotFoundError(f"No {spec.name} record matches {dict(key)}.")
                return self._select_one(conn, spec, key)

    def upsert(self, table: str, row: Mapping[str, Any], conflict: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        """Insert or overwrite the row identified by *conflict* (default: the table key)."""
        spec = self._spec(table)
        conflict = tuple(conflict or spec.key)
        self._check_columns(spec, list(row) + list(conflict))
        missing = [c for c in conflict if row.get(c) in (None, "")]
        if missing:
            raise ValidationError(f"{spec.name} row is missing key column(s): {', '.join(missing)}.")

        columns = list(row)
        updates = [c for c in columns if c not in conflict]
        sql = (
            f"INSERT INTO {spec.name} ({', '.join(columns)}) "
            f"VALUES ({', '.join(':v_' + c for c in columns)}) "
            f"ON CONFLICT ({', '.join(conflict)}) "
        )
        if updates:
            sql += "DO UPDATE SET " + ", ".join(f"{c} = excluded.{c}" for c in updates)
        else:
            sql += "DO NOTHING"
        params = {f"v_{c}": self._encode(spec, c, v) for c, v in row.items()}

        with converted_store_errors(f"save {table}"):
            with self.engine.begin() as conn:
                conn.execute(text(sql), params)
                if set(conflict) == set(spec.key):
                    return self._select_one(conn, spec, {c: row[c] for c in spec.key})
                return dict(row)
