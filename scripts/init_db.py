from __future__ import annotations

import importlib

from dotenv import load_dotenv

from class_attendance.config import get_settings_module
from class_attendance.database.bootstrap import SCHEMA_PATH, apply_schema, list_tables
from class_attendance.database.connection import DBConfig, DatabaseConnection


def main() -> None:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    db_config = DBConfig.from_dict(dict(settings.DB_CONFIG))
    conn = DatabaseConnection.get_instance(db_config)

    apply_schema(conn, db_config.database, schema_path=SCHEMA_PATH)
    tables = list_tables(conn)
    print(
        "OK: Applied schema.sql -> "
        f"{db_config.user}@{db_config.host}:{db_config.port}/{db_config.database} "
        f"(tables={len(tables)})"
    )


if __name__ == "__main__":
    main()
