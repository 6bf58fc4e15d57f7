"""
Target table management for the warehouse.

Creates the DUR load table, checks that an existing table has every
column the loader writes, and counts rows by batch tag for post-run
verification.
"""

from psycopg import sql

from durloader.core.models import DUR_QUARTERLY_LOAD, TargetTable

from .connection import ConnectionHandle

DUR_QUARTERLY_LOAD_DDL = """
CREATE TABLE IF NOT EXISTS {table} (
    id BIGINT NOT NULL,
    member_id VARCHAR(50) NOT NULL,
    prescription_number VARCHAR(50),
    ndc VARCHAR(11),
    service_date DATE,
    provider_id VARCHAR(50),
    pharmacy_id VARCHAR(50),
    drug_name VARCHAR(255),
    drug_strength VARCHAR(50),
    quantity NUMERIC(10, 2),
    days_supply INTEGER,
    paid_amount NUMERIC(10, 2),
    dur_alert_code VARCHAR(10),
    dur_alert_description VARCHAR(500),
    quarter VARCHAR(2) NOT NULL,
    year INTEGER NOT NULL,
    batch_id VARCHAR(50),
    created_date TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_date TIMESTAMPTZ,
    status VARCHAR(20) NOT NULL DEFAULT 'PENDING',
    error_message VARCHAR(1000),
    additional_data TEXT,

    CONSTRAINT {pk} PRIMARY KEY (id),
    CONSTRAINT {chk_quarter} CHECK (quarter IN ('Q1', 'Q2', 'Q3', 'Q4')),
    CONSTRAINT {chk_year} CHECK (year >= 2020 AND year <= 2099),
    CONSTRAINT {chk_status} CHECK (status IN ('PENDING', 'VALIDATED', 'PROCESSED', 'ERROR'))
)
"""

DUR_QUARTERLY_LOAD_INDEXES = {
    "member": ("member_id",),
    "quarter_year": ("quarter", "year"),
    "batch": ("batch_id",),
    "service_date": ("service_date",),
    "status": ("status",),
    "created_date": ("created_date",),
}


class TargetSchemaManager:
    """
    DDL and verification queries for the target table.

    Every method takes the ConnectionHandle to run on, so the caller
    decides how connections are acquired and released.
    """

    def __init__(self, table: TargetTable = DUR_QUARTERLY_LOAD):
        """
        Initialize schema manager.

        Args:
            table: Target table descriptor
        """
        self.table = table

    def ensure_table(self, handle: ConnectionHandle) -> None:
        """
        Create the target table and its indexes if they do not exist.
        """
        name = self.table.name
        ddl = sql.SQL(DUR_QUARTERLY_LOAD_DDL).format(
            table=sql.Identifier(name),
            pk=sql.Identifier(f"pk_{name}"),
            chk_quarter=sql.Identifier(f"chk_{name}_quarter"),
            chk_year=sql.Identifier(f"chk_{name}_year"),
            chk_status=sql.Identifier(f"chk_{name}_status"),
        )

        conn = handle.connection
        with conn.transaction():
            conn.execute(ddl)
            for suffix, columns in DUR_QUARTERLY_LOAD_INDEXES.items():
                conn.execute(
                    sql.SQL("CREATE INDEX IF NOT EXISTS {index} ON {table} ({columns})").format(
                        index=sql.Identifier(f"idx_{name}_{suffix}"),
                        table=sql.Identifier(name),
                        columns=sql.SQL(", ").join(sql.Identifier(c) for c in columns),
                    )
                )

    def table_exists(self, handle: ConnectionHandle) -> bool:
        row = handle.connection.execute(
            "SELECT to_regclass(%s) IS NOT NULL AS present", (self.table.name,)
        ).fetchone()
        return bool(row and row["present"])

    def existing_columns(self, handle: ConnectionHandle) -> list[str]:
        """
        Column names of the target table, in ordinal order.
        """
        rows = handle.connection.execute(
            """
            SELECT column_name
            FROM information_schema.columns
            WHERE table_name = %s
              AND table_schema = ANY(current_schemas(false))
            ORDER BY ordinal_position
            """,
            (self.table.name,),
        ).fetchall()
        return [row["column_name"] for row in rows]

    def missing_columns(self, handle: ConnectionHandle) -> list[str]:
        """
        Columns the loader writes that the table lacks.

        A missing table reports every column as missing.
        """
        present = {name.lower() for name in self.existing_columns(handle)}
        return [name for name in self.table.column_names if name.lower() not in present]

    def count_rows(self, handle: ConnectionHandle, batch_tag: str) -> int:
        """
        Number of rows carrying the given batch tag.
        """
        query = sql.SQL("SELECT COUNT(*) AS row_count FROM {table} WHERE batch_id = %s").format(
            table=sql.Identifier(self.table.name)
        )
        row = handle.connection.execute(query, (batch_tag,)).fetchone()
        return row["row_count"] if row else 0

    def truncate(self, handle: ConnectionHandle) -> None:
        """Remove every row from the target table."""
        conn = handle.connection
        with conn.transaction():
            conn.execute(sql.SQL("TRUNCATE TABLE {table}").format(table=sql.Identifier(self.table.name)))
