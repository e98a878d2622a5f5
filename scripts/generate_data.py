"""
Synthetic data generator for fleetboard.

Implements deterministic pseudo-random row generation for every dashboard
table and writes them as one JSON document (`{table: [rows]}`) that
JsonFileRecordSource and the CLI `--data-file` option read directly.
"""

from __future__ import annotations

import json
import random
import sys
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List

import typer

app = typer.Typer(help="Generate synthetic dashboard data as a JSON document of tables.")

MAKES = {
    "Toyota": ["Prius", "Corolla", "C-HR"],
    "Ford": ["Focus", "Fiesta", "Transit"],
    "Kia": ["Niro", "Ceed"],
    "Tesla": ["Model 3", "Model Y"],
    "Volkswagen": ["Golf", "Passat"],
}
VEHICLE_STATUSES = ["available", "rented", "maintenance"]
CATEGORIES = ["economy", "saloon", "suv", "van", "electric"]
ROLES = ["SUPER_ADMIN", "ADMIN", "ADMIN_STAFF"]
SEVERITIES = ["low", "medium", "high", "critical"]
ALERT_STATUSES = ["active", "investigating", "resolved", "false_positive"]
DOC_STATUSES = ["approved", "pending", "rejected"]
ACCESS_LEVELS = ["public", "private", "restricted"]
PAYMENT_STATUSES = ["pending", "completed", "overdue"]


def _iso(moment: datetime) -> str:
    return moment.isoformat()


def _plate(rng: random.Random) -> str:
    letters = "ABCDEFGHJKLMNPRSTUVWXYZ"
    return (
        "".join(rng.choice(letters) for _ in range(2))
        + f"{rng.randint(10, 99)} "
        + "".join(rng.choice(letters) for _ in range(3))
    )


def _generate_tables(rows: int, seed: int, now: datetime | None = None) -> Dict[str, List[Dict[str, Any]]]:
    rng = random.Random(seed)
    now = now or datetime.now(UTC)
    partners = [f"partner-{i}" for i in range(1, max(2, rows // 10) + 1)]

    def ago(max_days: int) -> str:
        return _iso(now - timedelta(minutes=rng.randint(0, max_days * 24 * 60)))

    vehicles = []
    for i in range(1, rows + 1):
        make = rng.choice(sorted(MAKES))
        model = rng.choice(MAKES[make])
        status = rng.choice(VEHICLE_STATUSES)
        vehicle: Dict[str, Any] = {
            "id": f"veh-{i:05d}",
            "name": f"{make} {model}",
            "make": make,
            "model": model,
            "year": rng.randint(2015, 2025),
            "registration_number": _plate(rng),
            "category": rng.choice(CATEGORIES),
            "status": status,
            "approval_status": rng.choice(["approved", "approved", "pending", "rejected"]),
            "partner_id": rng.choice(partners),
            "weekly_rate": round(rng.uniform(150, 450), 2),
            "created_at": ago(365),
        }
        vehicle["partner_name"] = vehicle["partner_id"].replace("-", " ").title()
        if status == "rented":
            vehicle["current_driver"] = {"id": f"drv-{rng.randint(1, 999):03d}", "name": f"Driver {i}"}
        vehicles.append(vehicle)

    users = [
        {
            "id": f"usr-{i:05d}",
            "full_name": f"User {i}",
            "email": f"user{i}@example.com",
            "role": rng.choice(ROLES),
            "status": rng.choice(["active", "active", "active", "suspended"]),
            "security_score": rng.randint(60, 100),
            "last_login": ago(60),
        }
        for i in range(1, rows + 1)
    ]

    documents = [
        {
            "id": f"doc-{i:05d}",
            "name": f"document-{i}.pdf",
            "document_type": rng.choice(["insurance", "mot", "v5c", "licence"]),
            "uploaded_by": f"user{rng.randint(1, rows)}@example.com",
            "status": rng.choice(DOC_STATUSES),
            "access_level": rng.choice(ACCESS_LEVELS),
            "encryption_status": rng.choice(["encrypted", "unencrypted"]),
            "compliance_status": rng.choice(["compliant", "compliant", "non_compliant"]),
            "risk_level": rng.choice(SEVERITIES),
            "size": rng.randint(10_000, 12_000_000),
            "uploaded_at": ago(30),
        }
        for i in range(1, rows + 1)
    ]

    fraud_alerts = [
        {
            "id": f"alr-{i:05d}",
            "alert_type": rng.choice(["payment", "identity", "login", "booking"]),
            "description": f"Suspicious {rng.choice(['login', 'payment', 'booking'])} pattern",
            "user_email": f"user{rng.randint(1, rows)}@example.com",
            "ip_address": f"10.0.{rng.randint(0, 20)}.{rng.randint(1, 254)}",
            "severity": rng.choice(SEVERITIES),
            "status": rng.choice(ALERT_STATUSES),
            "risk_score": rng.randint(0, 100),
            "financial_impact": round(rng.uniform(0, 5_000), 2),
            "automated_response": rng.choice([True, False]),
            "manual_review_required": rng.choice([True, False]),
            "detected_at": ago(30),
        }
        for i in range(1, rows + 1)
    ]

    quick_responses = [
        {
            "id": f"qr-{i:04d}",
            "title": f"Response {i}",
            "content": rng.choice(
                ["Your booking is confirmed.", "Please upload your licence.", "Payment received."]
            ),
            "category": rng.choice(["driver", "partner", "general"]),
            "tags": rng.sample(["booking", "payment", "documents", "vehicle"], k=2),
            "is_active": rng.choice([True, True, False]),
            "usage_count": rng.randint(0, 200),
        }
        for i in range(1, max(1, rows // 4) + 1)
    ]

    promo_codes = [
        {
            "id": f"promo-{i:04d}",
            "code": f"SAVE{rng.randint(5, 50)}-{i}",
            "description": "Weekly rental discount",
            "discount_type": rng.choice(["percentage", "fixed"]),
            "discount_value": rng.choice([5, 10, 15, 20]),
            "used_count": rng.randint(0, 40),
            "is_active": rng.choice([True, False]),
            "created_at": ago(90),
        }
        for i in range(1, max(1, rows // 4) + 1)
    ]

    payment_instructions = []
    for i in range(1, rows + 1):
        vehicle = rng.choice(vehicles)
        payment_instructions.append(
            {
                "id": f"pay-{i:05d}",
                "partner_id": vehicle["partner_id"],
                "driver_id": f"drv-{rng.randint(1, 999):03d}",
                "driver_name": f"Driver {rng.randint(1, rows)}",
                "vehicle_id": vehicle["id"],
                "vehicle_name": vehicle["name"],
                "license_plate": vehicle["registration_number"],
                "amount": vehicle["weekly_rate"],
                "deposit_amount": rng.choice([0, 250, 500]),
                "currency": "GBP",
                "payment_method": rng.choice(["bank_transfer", "direct_debit"]),
                "type": rng.choice(["weekly_rent", "deposit", "refund"]),
                "status": rng.choice(PAYMENT_STATUSES),
                "reference_number": f"REF{rng.randint(100000, 999999)}",
                "due_date": _iso(now + timedelta(days=rng.randint(-14, 14))),
            }
        )

    return {
        "vehicles": vehicles,
        "users": users,
        "documents": documents,
        "fraud_alerts": fraud_alerts,
        "quick_responses": quick_responses,
        "promo_codes": promo_codes,
        "payment_instructions": payment_instructions,
    }


def _write_json(path: Path, tables: Dict[str, List[Dict[str, Any]]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(tables, f, indent=2)


@app.command()
def main(
    rows: int = typer.Option(
        200,
        "--rows",
        "-r",
        help="Rows per main table (quick responses and promo codes get a quarter).",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    output: Path = typer.Option(
        Path("data/fleetboard.json"),
        "--output",
        "-o",
        help="JSON output path.",
    ),
) -> None:
    """
    Generate synthetic dashboard tables and write them as JSON.
    """
    start = time.perf_counter()
    typer.echo(f"Generating {rows:,} rows per table -> {output} (seed={seed})")
    tables = _generate_tables(rows=rows, seed=seed)
    _write_json(output, tables)
    duration = time.perf_counter() - start
    total = sum(len(table) for table in tables.values())
    typer.echo(f"Wrote {total:,} rows across {len(tables)} tables in {duration:.2f}s")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
