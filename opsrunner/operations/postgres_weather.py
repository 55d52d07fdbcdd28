# ==============================================
# Weather Operations — PostgreSQL
# ==============================================
#
# PURPOSE:
#   The relational-store operations of the weather example and the
#   fixed order they run in.
#
#   Every operation has the signature
#       func(store: PostgresStore, context: OperationContext) -> result
#   and issues one or more statements through store.execute() /
#   store.fetch_all().
#
#   DDL uses IF NOT EXISTS / OR REPLACE wherever PostgreSQL has it,
#   so the whole sequence can run against a database twice.
#
# SEQUENCES:
# ----------
# - postgres_operations(include_cluster=False)
#     Core tutorial: types, tables, inheritance, CRUD, joins,
#     aggregates, views, CTEs, materialized views, parallel query,
#     lateral joins, custom aggregates, hash partitioning.
#
# - include_cluster=True appends statements that need superuser
#   rights and other hosts: foreign data wrapper, logical replication,
#   event trigger.
#
# ==============================================

from typing import Any, Dict, List

from opsrunner.runner.operation import Operation, OperationContext


def _show(label: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    print(f"{label}: {rows}")
    return rows


# ----------------------------------------------
# Schema
# ----------------------------------------------

def create_type_showcase_tables(store, context: OperationContext) -> None:
    # Numeric types
    store.execute("""
        CREATE TABLE IF NOT EXISTS numeric_types (
            id SERIAL PRIMARY KEY,
            int_value INT,
            float_value FLOAT,
            decimal_value DECIMAL(10, 2)
        )
    """)
    # String types
    store.execute("""
        CREATE TABLE IF NOT EXISTS string_types (
            id SERIAL PRIMARY KEY,
            char_value CHAR(10),
            varchar_value VARCHAR(255),
            text_value TEXT
        )
    """)
    # Date/Time types
    store.execute("""
        CREATE TABLE IF NOT EXISTS datetime_types (
            id SERIAL PRIMARY KEY,
            date_value DATE,
            timestamp_value TIMESTAMP,
            interval_value INTERVAL
        )
    """)
    # JSONB for storing JSON data
    store.execute("""
        CREATE TABLE IF NOT EXISTS json_data (
            id SERIAL PRIMARY KEY,
            data JSONB
        )
    """)
    print("Type showcase tables created.")


def create_weather_tables(store, context: OperationContext) -> None:
    store.execute("CREATE SEQUENCE IF NOT EXISTS cities_no_seq")
    store.execute("""
        CREATE TABLE IF NOT EXISTS cities (
            name       VARCHAR(80) PRIMARY KEY,
            location   POINT DEFAULT '(0, 0)',
            no         INT DEFAULT nextval('cities_no_seq')
        )
    """)
    store.execute("""
        CREATE TABLE IF NOT EXISTS weather (
            city      VARCHAR(80) REFERENCES cities(name),
            temp_lo   INT,
            temp_hi   INT,
            prcp      REAL,
            date      DATE
        )
    """)
    print("Tables cities and weather created.")


def create_capitals_table(store, context: OperationContext) -> None:
    store.execute("""
        CREATE TABLE IF NOT EXISTS capitals (
            state CHAR(2) UNIQUE NOT NULL
        ) INHERITS (cities)
    """)
    print("Table capitals created (inherits cities).")


DROP_GUARD_TRIGGER = "prevent_table_drop"


def drop_scratch_table(store, context: OperationContext) -> None:
    """
    Drop the scratch table.

    prevent_table_drop (installed by the cluster statements) fires on
    every DROP TABLE, IF EXISTS included, so it is switched off around
    the drop and switched back on afterwards.
    """
    guarded = bool(store.fetch_all(
        "SELECT 1 FROM pg_event_trigger WHERE evtname = %s AND evtenabled <> 'D'",
        (DROP_GUARD_TRIGGER,)
    ))
    if not guarded:
        store.execute("DROP TABLE IF EXISTS scratch")
        print("Table scratch dropped.")
        return

    store.execute(f"ALTER EVENT TRIGGER {DROP_GUARD_TRIGGER} DISABLE")
    try:
        store.execute("DROP TABLE IF EXISTS scratch")
    finally:
        store.execute(f"ALTER EVENT TRIGGER {DROP_GUARD_TRIGGER} ENABLE")
    print(f"Table scratch dropped ({DROP_GUARD_TRIGGER} paused for the drop).")


# ----------------------------------------------
# Writes
# ----------------------------------------------

def seed_cities(store, context: OperationContext) -> int:
    # weather.city references cities.name
    inserted = store.execute(
        "INSERT INTO cities (name, location) VALUES (%s, %s), (%s, %s) "
        "ON CONFLICT (name) DO NOTHING",
        ("Hayward", "(-122.08, 37.67)", "Oakland", "(-122.27, 37.80)")
    )
    print(f"Seeded {inserted} cities.")
    return inserted


def insert_weather(store, context: OperationContext) -> int:
    inserted = store.execute(
        "INSERT INTO weather (date, city, temp_hi, temp_lo) VALUES (%s, %s, %s, %s)",
        ("1994-11-29", "Hayward", 54, 37)
    )
    print(f"Inserted {inserted} weather row.")
    return inserted


def update_weather(store, context: OperationContext) -> int:
    updated = store.execute(
        "UPDATE weather SET temp_hi = temp_hi - 2, temp_lo = temp_lo - 2 WHERE date > %s",
        ("1994-11-28",)
    )
    print(f"Updated {updated} weather rows.")
    return updated


def delete_weather(store, context: OperationContext) -> int:
    deleted = store.execute("DELETE FROM weather WHERE city = %s", ("Hayward",))
    print(f"Deleted {deleted} Hayward weather rows.")
    return deleted


# ----------------------------------------------
# Reads
# ----------------------------------------------

def select_weather(store, context: OperationContext) -> dict:
    return {
        "distinct_cities": _show(
            "Distinct cities",
            store.fetch_all("SELECT DISTINCT city FROM weather")
        ),
        "temp_avg": _show(
            "Average temperature per row",
            store.fetch_all("SELECT city, (temp_hi + temp_lo) / 2 AS temp_avg, date FROM weather")
        ),
        "all": _show("All weather rows", store.fetch_all("SELECT * FROM weather")),
    }


def join_weather_cities(store, context: OperationContext) -> dict:
    return {
        "join": _show(
            "Join",
            store.fetch_all("SELECT * FROM weather JOIN cities ON city = name")
        ),
        "qualified": _show(
            "Join (qualified columns)",
            store.fetch_all("""
                SELECT weather.city, weather.temp_lo, weather.temp_hi,
                       weather.prcp, weather.date, cities.location
                FROM weather JOIN cities ON weather.city = cities.name
            """)
        ),
        "implicit": _show(
            "Join (implicit)",
            store.fetch_all("SELECT * FROM weather, cities WHERE city = name")
        ),
    }


def aggregate_weather(store, context: OperationContext) -> dict:
    return {
        "max_temp_lo": _show(
            "Max temp_lo",
            store.fetch_all("SELECT max(temp_lo) FROM weather")
        ),
        "coldest_city": _show(
            "City with max temp_lo",
            store.fetch_all("SELECT city FROM weather WHERE temp_lo = (SELECT max(temp_lo) FROM weather)")
        ),
        "group_by": _show(
            "Count and Group By",
            store.fetch_all("SELECT city, count(*), max(temp_lo) FROM weather GROUP BY city")
        ),
        "having": _show(
            "Count, Group By and Having",
            store.fetch_all("""
                SELECT city, count(*), max(temp_lo)
                FROM weather
                GROUP BY city
                HAVING max(temp_lo) < 40
            """)
        ),
        "filter": _show(
            "Count with FILTER",
            store.fetch_all("""
                SELECT city, count(*) FILTER (WHERE temp_lo < 45), max(temp_lo)
                FROM weather
                GROUP BY city
            """)
        ),
    }


def create_weather_view(store, context: OperationContext) -> list:
    store.execute("""
        CREATE OR REPLACE VIEW myview AS
        SELECT name, temp_lo, temp_hi, prcp, date, location
        FROM weather, cities
        WHERE city = name
    """)
    return _show("View myview", store.fetch_all("SELECT * FROM myview"))


def union_all(store, context: OperationContext) -> list:
    return _show("UNION ALL", store.fetch_all("""
        SELECT 1 AS column1, 2 AS column2
        UNION ALL
        SELECT 3 AS column1, 4 AS column2
    """))


def recent_weather_cte(store, context: OperationContext) -> list:
    return _show("Recent weather (CTE)", store.fetch_all("""
        WITH recent_weather AS (
            SELECT city, temp_hi, temp_lo, date
            FROM weather
            WHERE date > '1994-11-28'
        )
        SELECT * FROM recent_weather
    """))


def organization_chart(store, context: OperationContext) -> list:
    store.execute("""
        CREATE TABLE IF NOT EXISTS employees (
            employee_id   INT PRIMARY KEY,
            employee_name TEXT NOT NULL,
            manager_id    INT REFERENCES employees(employee_id)
        )
    """)
    store.execute(
        "INSERT INTO employees (employee_id, employee_name, manager_id) "
        "VALUES (%s, %s, %s), (%s, %s, %s), (%s, %s, %s) "
        "ON CONFLICT (employee_id) DO NOTHING",
        (1, "Ada", None, 2, "Grace", 1, 3, "Linus", 2)
    )
    return _show("Organization chart (recursive CTE)", store.fetch_all("""
        WITH RECURSIVE organization_chart AS (
            SELECT employee_id, employee_name, manager_id
            FROM employees
            WHERE manager_id IS NULL
            UNION ALL
            SELECT e.employee_id, e.employee_name, e.manager_id
            FROM employees e
            JOIN organization_chart o ON e.manager_id = o.employee_id
        )
        SELECT * FROM organization_chart
    """))


def weather_summary_matview(store, context: OperationContext) -> list:
    store.execute("""
        CREATE MATERIALIZED VIEW IF NOT EXISTS weather_summary AS
        SELECT city, AVG(temp_hi) AS avg_temp_hi, AVG(temp_lo) AS avg_temp_lo, COUNT(*) AS record_count
        FROM weather
        GROUP BY city
    """)
    store.execute("REFRESH MATERIALIZED VIEW weather_summary")
    return _show("Materialized view weather_summary", store.fetch_all("SELECT * FROM weather_summary"))


def parallel_sum(store, context: OperationContext) -> list:
    store.execute("SET max_parallel_workers_per_gather = 4")
    return _show("Parallel SUM(temp_hi)", store.fetch_all(
        "SELECT SUM(temp_hi) FROM weather WHERE temp_lo > %s", (40,)
    ))


def latest_weather_lateral(store, context: OperationContext) -> list:
    return _show("Latest weather per city (LATERAL)", store.fetch_all("""
        SELECT cities.name, w.date, w.temp_hi, w.temp_lo
        FROM cities
        JOIN LATERAL (
            SELECT temp_hi, temp_lo, date
            FROM weather
            WHERE weather.city = cities.name
            ORDER BY date DESC
            LIMIT 1
        ) w ON TRUE
    """))


def string_agg_custom(store, context: OperationContext) -> list:
    # textcat(state, value): the aggregate takes exactly one argument
    store.execute("""
        CREATE OR REPLACE AGGREGATE string_agg_custom(TEXT) (
            SFUNC = textcat,
            STYPE = TEXT,
            INITCOND = ''
        )
    """)
    return _show("Custom aggregate", store.fetch_all(
        "SELECT string_agg_custom(name || ', ') AS names FROM cities"
    ))


def hash_partitioned_sales(store, context: OperationContext) -> list:
    store.execute("""
        CREATE TABLE IF NOT EXISTS sales (
            id SERIAL PRIMARY KEY,
            sale_date DATE,
            amount NUMERIC
        ) PARTITION BY HASH (id)
    """)
    for remainder in range(4):
        store.execute(
            f"CREATE TABLE IF NOT EXISTS sales_partition_{remainder + 1} PARTITION OF sales "
            f"FOR VALUES WITH (MODULUS 4, REMAINDER {remainder})"
        )
    store.execute("INSERT INTO sales (sale_date, amount) VALUES (%s, %s)", ("2024-09-28", 100.00))
    return _show("Sales over 50", store.fetch_all("SELECT * FROM sales WHERE amount > %s", (50,)))


# ----------------------------------------------
# Cluster-level (superuser, remote hosts)
# ----------------------------------------------

def foreign_data_wrapper(store, context: OperationContext) -> list:
    store.execute("CREATE EXTENSION IF NOT EXISTS postgres_fdw")
    store.execute("""
        CREATE SERVER IF NOT EXISTS foreign_server
        FOREIGN DATA WRAPPER postgres_fdw
        OPTIONS (host 'remote_host', dbname 'foreign_db', port '5432')
    """)
    store.execute("""
        CREATE USER MAPPING IF NOT EXISTS FOR current_user
        SERVER foreign_server
        OPTIONS (user 'remote_user', password 'remote_password')
    """)
    store.execute("CREATE SCHEMA IF NOT EXISTS local_schema")
    store.execute("IMPORT FOREIGN SCHEMA public FROM SERVER foreign_server INTO local_schema")
    return _show("Foreign table", store.fetch_all("SELECT * FROM local_schema.foreign_table"))


def logical_replication(store, context: OperationContext) -> None:
    store.execute("CREATE PUBLICATION my_publication FOR ALL TABLES")
    store.execute("""
        CREATE SUBSCRIPTION my_subscription
        CONNECTION 'host=primary_host dbname=primary_db user=replication_user password=replication_password'
        PUBLICATION my_publication
    """)
    print("Publication and subscription created.")


def prevent_table_drop_trigger(store, context: OperationContext) -> None:
    # The function has to exist before the trigger that calls it
    store.execute("""
        CREATE OR REPLACE FUNCTION prevent_table_drop_function() RETURNS event_trigger AS $$
        BEGIN
            RAISE EXCEPTION 'Dropping tables is prohibited!';
        END;
        $$ LANGUAGE plpgsql
    """)
    store.execute("DROP EVENT TRIGGER IF EXISTS prevent_table_drop")
    store.execute("""
        CREATE EVENT TRIGGER prevent_table_drop
        ON ddl_command_start
        WHEN TAG IN ('DROP TABLE')
        EXECUTE FUNCTION prevent_table_drop_function()
    """)
    print("Event trigger prevent_table_drop installed.")


def postgres_operations(include_cluster: bool = False) -> List[Operation]:
    """The fixed relational-store sequence, in execution order."""
    operations = [
        Operation("create_type_showcase_tables", create_type_showcase_tables),
        Operation("create_weather_tables", create_weather_tables),
        Operation("create_capitals_table", create_capitals_table),
        Operation("drop_scratch_table", drop_scratch_table),
        Operation("seed_cities", seed_cities),
        Operation("insert_weather", insert_weather),
        Operation("update_weather", update_weather),
        Operation("delete_weather", delete_weather),
        Operation("select_weather", select_weather),
        Operation("join_weather_cities", join_weather_cities),
        Operation("aggregate_weather", aggregate_weather),
        Operation("create_weather_view", create_weather_view),
        Operation("union_all", union_all),
        Operation("recent_weather_cte", recent_weather_cte),
        Operation("organization_chart", organization_chart),
        Operation("weather_summary_matview", weather_summary_matview),
        Operation("parallel_sum", parallel_sum),
        Operation("latest_weather_lateral", latest_weather_lateral),
        Operation("string_agg_custom", string_agg_custom),
        Operation("hash_partitioned_sales", hash_partitioned_sales),
    ]
    if include_cluster:
        operations += [
            Operation("foreign_data_wrapper", foreign_data_wrapper),
            Operation("logical_replication", logical_replication),
            Operation("prevent_table_drop_trigger", prevent_table_drop_trigger),
        ]
    return operations
