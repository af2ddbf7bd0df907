# scripts/make_reports.py
from __future__ import annotations

from backoffice.config_loader import load_system_config
from backoffice.reports import report_from_config


def main() -> None:
    cfg = load_system_config("config/system_config.yaml")
    summary, outputs = report_from_config(cfg)

    print("KPIS:", summary)
    print("RESULTS GENERATED:")
    for path in outputs:
        print(" -", path)


if __name__ == "__main__":
    main()
