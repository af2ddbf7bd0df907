from __future__ import annotations

import os
import sqlite3
from typing import Dict, List, Sequence, Tuple

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd

from backoffice.bootstrap import build_service
from lifecycle.models import STATUS_ORDER, Equipment, to_dict

EQUIPMENT_COLUMNS = [
    "id", "code", "description", "type", "quantity", "client_id", "received_by",
    "received_at", "status", "cleaning_started_at", "cleaning_finished_at",
    "returned_at", "returned_by", "return_comments",
]

_TIME_COLUMNS = ["received_at", "cleaning_started_at", "cleaning_finished_at", "returned_at"]


def equipment_frame(equipment: Sequence[Equipment]) -> pd.DataFrame:
    df = pd.DataFrame([to_dict(e) for e in equipment], columns=EQUIPMENT_COLUMNS)
    for col in _TIME_COLUMNS:
        df[col] = pd.to_datetime(df[col], utc=True)
    return df


def status_summary(df: pd.DataFrame) -> pd.DataFrame:
    """Count and share of equipment per status, in life-cycle order (status board)."""
    order = [s.value for s in STATUS_ORDER]
    counts = df["status"].value_counts().reindex(order, fill_value=0)
    out = counts.rename_axis("status").reset_index(name="count")
    total = int(out["count"].sum())
    out["percent"] = (out["count"] / total * 100.0).round(1) if total else 0.0
    return out


def kpis(df: pd.DataFrame) -> Dict[str, float]:
    """
    Headline numbers of the reports page:
      - processed: equipment received
      - return_rate: % already returned
      - clients_served: distinct client ids
      - avg_cleaning_hours: mean of finished - started over records with both stamps
    """
    processed = len(df)
    returned = int((df["status"] == "RETURNED").sum())

    durations = (df["cleaning_finished_at"] - df["cleaning_started_at"]).dropna()
    avg_hours = float(durations.dt.total_seconds().mean() / 3600.0) if len(durations) else 0.0

    return {
        "processed": processed,
        "return_rate": round(returned * 100.0 / processed, 1) if processed else 0.0,
        "clients_served": int(df["client_id"].nunique()),
        "avg_cleaning_hours": round(avg_hours, 2),
    }


def transition_history(db_path: str) -> pd.DataFrame:
    con = sqlite3.connect(db_path)
    df = pd.read_sql_query("SELECT * FROM transitions ORDER BY id", con)
    con.close()
    return df


def write_reports(df: pd.DataFrame, table_dir: str, graph_dir: str) -> List[str]:
    os.makedirs(table_dir, exist_ok=True)
    os.makedirs(graph_dir, exist_ok=True)

    out_equipment = os.path.join(table_dir, "equipment.csv")
    df.to_csv(out_equipment, index=False)

    summary = status_summary(df)
    out_summary = os.path.join(table_dir, "status_summary.csv")
    summary.to_csv(out_summary, index=False)

    out_kpis = os.path.join(table_dir, "kpis.csv")
    pd.DataFrame([kpis(df)]).to_csv(out_kpis, index=False)

    plt.figure()
    plt.bar(summary["status"], summary["count"])
    plt.ylabel("Equipment")
    plt.title("Equipment by status")
    plt.tight_layout()

    out_png = os.path.join(graph_dir, "status_board.png")
    plt.savefig(out_png, dpi=150)
    plt.close()

    return [out_equipment, out_summary, out_kpis, out_png]


def report_from_config(cfg) -> Tuple[Dict[str, float], List[str]]:
    """
    Builds every report for the store named in the config, plus the audit
    transition history. A memory store starts empty in each process, so it
    has nothing to report on.
    """
    if cfg.store_backend == "memory":
        raise ValueError("reports need a persistent store: set store.backend to 'sqlite'")

    service = build_service(cfg)
    df = equipment_frame(service.list_equipment())
    outputs = write_reports(df, cfg.report_table_dir, cfg.report_graph_dir)

    out_history = os.path.join(cfg.report_table_dir, "transitions.csv")
    transition_history(cfg.db_path).to_csv(out_history, index=False)
    outputs.append(out_history)
    return kpis(df), outputs
