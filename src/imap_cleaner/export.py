"""Export ranked groups to CSV or JSON."""

import csv
import json

from .aggregator import rank_groups
from .display import megabytes
from .models import ScanResult


def _rows(scan_result: ScanResult) -> list[dict]:
    rows = []
    for group in rank_groups(scan_result.groups):
        rows.append(
            {
                "key": group.key,
                "count": group.count,
                "mb": float(megabytes(group.total_bytes)),
                "folders": sorted(group.messages_by_folder),
            }
        )
    return rows


def export_scan(scan_result: ScanResult, format: str, output_path: str) -> None:
    """Export scan results to a file.

    Args:
        scan_result: The scan result to export.
        format: Output format, either 'csv' or 'json'.
        output_path: Path to write the output file.
    """
    rows = _rows(scan_result)

    if format == "csv":
        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=[scan_result.group_field, "count", "mb", "folders"])
            writer.writeheader()
            for row in rows:
                writer.writerow(
                    {
                        scan_result.group_field: row["key"],
                        "count": row["count"],
                        "mb": row["mb"],
                        "folders": "; ".join(row["folders"]),
                    }
                )
    elif format == "json":
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "field": scan_result.group_field,
                    "scan_date": scan_result.scan_date,
                    "total_messages": scan_result.total_messages,
                    "groups": rows,
                },
                f,
                indent=2,
                ensure_ascii=False,
            )
    else:
        raise ValueError(f"unsupported export format: {format}")

    print(f"Results saved to {output_path}")
