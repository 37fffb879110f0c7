from __future__ import annotations
import argparse
from pathlib import Path
from typing import Iterable, List, Optional, Union

import duckdb

from .errors import ProjectError
from .project import TABLES, is_valid_project_file


def _quote(value: Union[str, Path]) -> str:
    # ATTACH/COPY targets can't be bound as parameters
    return str(value).replace("'", "''")


def export_project(db: Union[str, Path], out: Union[str, Path]) -> List[Path]:
    """Write every project table to ``<out>/<table>.parquet``."""
    db_path = Path(db)
    if not db_path.exists():
        raise ProjectError(f"Project file not found: {db_path}")
    if not is_valid_project_file(db_path):
        raise ProjectError(f"Not a project file: {db_path}")

    out_dir = Path(out)
    out_dir.mkdir(parents=True, exist_ok=True)

    written: List[Path] = []
    con = duckdb.connect(database=":memory:")
    try:
        con.execute(f"ATTACH DATABASE '{_quote(db_path)}' AS proj (TYPE SQLITE, READ_ONLY);")
        for table in TABLES:
            target = out_dir / f"{table}.parquet"
            con.execute(f"COPY (SELECT * FROM proj.{table}) TO '{_quote(target)}' (FORMAT PARQUET, OVERWRITE TRUE);")
            written.append(target)
    finally:
        con.close()
    return written


def main(argv: Optional[Iterable[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Export a foldermatch project file to Parquet via DuckDB")
    ap.add_argument("--project", required=True)
    ap.add_argument("--out", required=True)
    args = ap.parse_args(list(argv) if argv is not None else None)

    export_project(args.project, args.out)
    print(f"[OK] Parquet written to {args.out}")


if __name__ == '__main__':
    main()
