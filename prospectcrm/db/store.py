"""
Table-scoped persistence client.

Equality filters, ordering and limits over named tables; insert, update-by-filter
and delete-by-filter. Table and column names are checked against
prospectcrm.db.schema.TABLE_COLUMNS, values are always bound parameters.

Relation-expanded reads (an action with its establishment name, ...) are not
expressed here: the engine modules write those joins explicitly and map them to
typed rows.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from prospectcrm.db.connection import get_db_cursor
from prospectcrm.db.schema import TABLE_COLUMNS

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


def _validate_columns(names: Iterable[str], allowed: set, entity: str) -> None:
    """Raise ValueError if any name is not an allowed column."""
    invalid = set(names) - allowed
    if invalid:
        raise ValueError(f"Invalid {entity} fields: {sorted(invalid)}")


class Table:
    """Query/insert/update/delete operations scoped to one table."""

    def __init__(self, name: str):
        if name not in TABLE_COLUMNS:
            raise ValueError(f"Unknown table: {name}")
        self.name = name
        self.columns = TABLE_COLUMNS[name]

    def __repr__(self):
        return f"Table({self.name!r})"

    def _where(self, filters: Optional[Row]) -> Tuple[str, Row]:
        """Build a WHERE clause from equality filters. None matches NULL."""
        if not filters:
            return '', {}
        _validate_columns(filters.keys(), self.columns, self.name)
        clauses = []
        params = {}
        for key, value in filters.items():
            if value is None:
                clauses.append(f"{key} IS NULL")
            else:
                clauses.append(f"{key} = %(w_{key})s")
                params[f"w_{key}"] = value
        return 'WHERE ' + ' AND '.join(clauses), params

    def select(
        self,
        filters: Optional[Row] = None,
        columns: Optional[Sequence[str]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        """Return matching rows as dicts."""
        if columns:
            _validate_columns(columns, self.columns, self.name)
            column_list = ', '.join(columns)
        else:
            column_list = '*'

        where, params = self._where(filters)
        sql = f"SELECT {column_list} FROM {self.name} {where}"

        if order_by:
            _validate_columns([order_by], self.columns, self.name)
            sql += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            sql += " LIMIT %(limit)s"
            params['limit'] = int(limit)

        with get_db_cursor() as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()

        logger.debug(f"select {self.name}: {len(rows)} rows (filters={filters})")
        return [dict(r) for r in rows]

    def select_one(self, filters: Row, columns: Optional[Sequence[str]] = None) -> Optional[Row]:
        rows = self.select(filters, columns=columns, limit=1)
        return rows[0] if rows else None

    def insert(self, rows: Union[Row, List[Row]], returning: str = 'id') -> List[Any]:
        """
        Insert one row or many rows in a single transaction.
        Returns: the `returning` column of each inserted row, in input order.
        """
        if isinstance(rows, dict):
            rows = [rows]
        if not rows:
            return []

        _validate_columns([returning], self.columns, self.name)
        results = []

        with get_db_cursor() as cur:
            for row in rows:
                if not row:
                    raise ValueError(f"Cannot insert an empty {self.name} row")
                _validate_columns(row.keys(), self.columns, self.name)
                keys = list(row.keys())
                cur.execute(
                    f"INSERT INTO {self.name} ({', '.join(keys)}) "
                    f"VALUES ({', '.join(f'%({k})s' for k in keys)}) "
                    f"RETURNING {returning}",
                    row,
                )
                results.append(cur.fetchone()[returning])

        logger.info(f"Inserted {len(results)} row(s) into {self.name}")
        return results

    def update(self, values: Row, filters: Row) -> int:
        """
        Update rows matching filters.
        Filters are mandatory: a table-wide UPDATE is never issued.
        Returns: number of rows updated.
        """
        if not values:
            return 0
        if not filters:
            raise ValueError(f"Refusing to update {self.name} without a filter")
        _validate_columns(values.keys(), self.columns, self.name)

        set_clauses = [f"{key} = %(v_{key})s" for key in values.keys()]
        if 'updated_at' in self.columns and 'updated_at' not in values:
            set_clauses.append("updated_at = NOW()")
        params = {f"v_{key}": value for key, value in values.items()}

        where, where_params = self._where(filters)
        params.update(where_params)

        with get_db_cursor() as cur:
            cur.execute(f"UPDATE {self.name} SET {', '.join(set_clauses)} {where}", params)
            count = cur.rowcount

        logger.info(f"Updated {count} row(s) in {self.name}: {sorted(values.keys())}")
        return count

    def delete(self, filters: Row) -> int:
        """Delete rows matching filters (mandatory). Returns: rows deleted."""
        if not filters:
            raise ValueError(f"Refusing to delete from {self.name} without a filter")
        where, params = self._where(filters)

        with get_db_cursor() as cur:
            cur.execute(f"DELETE FROM {self.name} {where}", params)
            count = cur.rowcount

        logger.info(f"Deleted {count} row(s) from {self.name}")
        return count


def table(name: str) -> Table:
    """Shorthand: table('actions').select({'etablissement_id': est_id})"""
    return Table(name)
