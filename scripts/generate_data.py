"""
Synthetic platform data for the reconciliation engine.

Simulates users depositing, buying raffle tickets and scratch cards, winning
prizes, earning referral bonuses and affiliate commissions, and withdrawing.
Every wallet balance equals the sum of its generated transactions, so the
engine's attribution closes exactly on generated data.

Output is either a JSON dataset (for `recon compute --dataset`) or rows loaded
into Postgres via COPY, or both. Generation is deterministic for a given seed
and anchor timestamp.
"""

from __future__ import annotations

import json
import random
import sys
import time
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List

import psycopg
import typer

from recon_engine.infrastructure.db_factory import build_dsn

app = typer.Typer(help="Generate synthetic platform data as JSON and/or load it into Postgres (COPY).")

CENT = Decimal("0.01")

SCRATCH_CARDS = [
    {"id": "sc-1", "name": "Lucky 2", "price": Decimal("2.00")},
    {"id": "sc-2", "name": "Gold 5", "price": Decimal("5.00")},
    {"id": "sc-3", "name": "Diamond 10", "price": Decimal("10.00")},
]

RAFFLES = [
    {"id": "rf-1", "title": "Motorbike", "price": Decimal("10.00"), "status": "open"},
    {"id": "rf-2", "title": "Smartphone", "price": Decimal("5.00"), "status": "finished"},
    {"id": "rf-3", "title": "Car", "price": Decimal("20.00"), "status": "open"},
]

REFERRAL_BONUS = Decimal("5.00")
ADMIN_BONUS = Decimal("10.00")

# Table -> column order used for COPY.
TABLE_COLUMNS: Dict[str, List[str]] = {
    "profiles": ["id", "created_at"],
    "wallets": ["id", "user_id", "balance"],
    "wallet_transactions": ["id", "wallet_id", "amount", "source_type", "type", "created_at"],
    "pix_deposits": ["id", "user_id", "amount", "status", "created_at"],
    "user_withdrawals": ["id", "user_id", "amount", "status", "created_at"],
    "scratch_cards": ["id", "name", "price"],
    "scratch_chances": [
        "id",
        "scratch_card_id",
        "user_id",
        "prize_won",
        "is_revealed",
        "created_at",
    ],
    "raffles": ["id", "title", "price", "status"],
    "raffle_tickets": ["id", "raffle_id", "user_id", "purchased_at"],
    "referrals": ["id", "referrer_id", "bonus_awarded", "created_at"],
    "affiliate_sales": ["id", "affiliate_id", "commission_amount", "commission_status", "created_at"],
}


def _money(rng: random.Random, low: int, high: int) -> Decimal:
    """Random amount between `low` and `high` whole units, in cents."""
    return (Decimal(rng.randint(low * 100, high * 100)) * CENT).quantize(CENT)


def _plan_events(rng: random.Random) -> List[str]:
    events = ["deposit"] * rng.randint(0, 3)
    if rng.random() < 0.3:
        events.append("referral")
    if rng.random() < 0.1:
        events.append("admin_bonus")
    if rng.random() < 0.1:
        events.extend(["affiliate_commission"] * rng.randint(1, 3))
    events.extend(["play"] * rng.randint(0, 8))
    rng.shuffle(events)
    # Deposits come first so most plays are affordable.
    events.sort(key=lambda e: 0 if e == "deposit" else 1)
    if rng.random() < 0.25:
        events.append("withdrawal")
    return events


def generate_tables(
    users: int, days: int, seed: int, anchor: datetime
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Simulate `users` users over the `days` days before `anchor`.

    Returns rows keyed by table name, shaped like the platform schema.
    """
    rng = random.Random(seed)
    span_seconds = max(days, 1) * 86_400
    origin = anchor - timedelta(days=max(days, 1))
    tables: Dict[str, List[Dict[str, Any]]] = {name: [] for name in TABLE_COLUMNS}
    tables["scratch_cards"] = [dict(card) for card in SCRATCH_CARDS]
    tables["raffles"] = [dict(raffle) for raffle in RAFFLES]
    counters: Dict[str, int] = {}

    def next_id(prefix: str) -> str:
        counters[prefix] = counters.get(prefix, 0) + 1
        return f"{prefix}-{counters[prefix]:06d}"

    for u in range(1, users + 1):
        user_id = f"user-{u:05d}"
        wallet_id = f"wallet-{u:05d}"
        events = _plan_events(rng)
        stamps = sorted(
            origin + timedelta(seconds=rng.randint(0, span_seconds - 1)) for _ in range(len(events) + 1)
        )
        tables["profiles"].append({"id": user_id, "created_at": stamps[0]})
        balance = Decimal("0.00")

        def credit(amount: Decimal, source: str, kind: str, at: datetime) -> None:
            nonlocal balance
            balance += amount
            tables["wallet_transactions"].append(
                {
                    "id": next_id("tx"),
                    "wallet_id": wallet_id,
                    "amount": amount,
                    "source_type": source,
                    "type": kind,
                    "created_at": at,
                }
            )

        for event, at in zip(events, stamps[1:]):
            if event == "deposit":
                amount = _money(rng, 10, 200)
                status = "paid" if rng.random() < 0.85 else rng.choice(["pending", "expired"])
                tables["pix_deposits"].append(
                    {"id": next_id("dep"), "user_id": user_id, "amount": amount, "status": status, "created_at": at}
                )
                if status == "paid":
                    credit(amount, "deposit", "deposit", at)
            elif event == "referral":
                tables["referrals"].append(
                    {"id": next_id("ref"), "referrer_id": user_id, "bonus_awarded": REFERRAL_BONUS, "created_at": at}
                )
                credit(REFERRAL_BONUS, "referral", "bonus", at)
            elif event == "admin_bonus":
                credit(ADMIN_BONUS, "admin_bonus", "bonus", at)
            elif event == "affiliate_commission":
                commission = _money(rng, 1, 30)
                tables["affiliate_sales"].append(
                    {
                        "id": next_id("aff"),
                        "affiliate_id": user_id,
                        "commission_amount": commission,
                        "commission_status": "approved",
                        "created_at": at,
                    }
                )
                credit(commission, "affiliate_commission", "commission", at)
            elif event == "play":
                if rng.random() < 0.6:
                    card = rng.choice(SCRATCH_CARDS)
                    if balance < card["price"]:
                        continue
                    credit(-card["price"], "purchase", "purchase", at)
                    revealed = rng.random() < 0.9
                    prize = None
                    if rng.random() < 0.25:
                        prize = (card["price"] * rng.choice([Decimal("0.5"), 1, 2, 5])).quantize(CENT)
                    tables["scratch_chances"].append(
                        {
                            "id": next_id("chance"),
                            "scratch_card_id": card["id"],
                            "user_id": user_id,
                            "prize_won": prize,
                            "is_revealed": revealed,
                            "created_at": at,
                        }
                    )
                    if prize is not None and revealed:
                        credit(prize, "prize", "prize", at + timedelta(seconds=1))
                else:
                    raffle = rng.choice(RAFFLES)
                    if balance < raffle["price"]:
                        continue
                    credit(-raffle["price"], "purchase", "purchase", at)
                    tables["raffle_tickets"].append(
                        {"id": next_id("ticket"), "raffle_id": raffle["id"], "user_id": user_id, "purchased_at": at}
                    )
            elif event == "withdrawal" and balance > 0:
                amount = (balance * Decimal(rng.randint(20, 100)) / 100).quantize(CENT)
                if amount <= 0:
                    continue
                status = rng.choice(["approved", "paid", "paid", "pending", "rejected"])
                tables["user_withdrawals"].append(
                    {"id": next_id("wd"), "user_id": user_id, "amount": amount, "status": status, "created_at": at}
                )
                if status in ("approved", "paid"):
                    credit(-amount, "withdrawal", "withdrawal", at)

        tables["wallets"].append({"id": wallet_id, "user_id": user_id, "balance": balance})

    return tables


def to_dataset(tables: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
    """Reshape generated tables into the in-memory store's JSON dataset layout."""
    card_price = {c["id"]: c["price"] for c in tables["scratch_cards"]}
    raffle_price = {r["id"]: r["price"] for r in tables["raffles"]}
    gameplay: List[Dict[str, Any]] = [
        {
            "product_line": "scratch_card",
            "price": card_price[row["scratch_card_id"]],
            "prize_won": row["prize_won"],
            "revealed": row["is_revealed"],
            "created_at": row["created_at"],
            "user_id": row["user_id"],
        }
        for row in tables["scratch_chances"]
    ]
    gameplay.extend(
        {
            "product_line": "raffle",
            "price": raffle_price[row["raffle_id"]],
            "created_at": row["purchased_at"],
            "user_id": row["user_id"],
        }
        for row in tables["raffle_tickets"]
    )
    gameplay.sort(key=lambda g: g["created_at"])

    return {
        "wallets": tables["wallets"],
        "transactions": [
            {
                "id": row["id"],
                "wallet_id": row["wallet_id"],
                "amount": row["amount"],
                "source_type": row["source_type"],
                "kind": row["type"],
                "occurred_at": row["created_at"],
            }
            for row in tables["wallet_transactions"]
        ],
        "deposits": [
            {k: row[k] for k in ("user_id", "amount", "status", "created_at")}
            for row in tables["pix_deposits"]
        ],
        "withdrawals": [
            {k: row[k] for k in ("user_id", "amount", "status", "created_at")}
            for row in tables["user_withdrawals"]
        ],
        "gameplay": gameplay,
        "referrals": [
            {k: row[k] for k in ("referrer_id", "bonus_awarded", "created_at")}
            for row in tables["referrals"]
        ],
        "affiliate_sales": [
            {k: row[k] for k in ("affiliate_id", "commission_amount", "commission_status", "created_at")}
            for row in tables["affiliate_sales"]
        ],
        "total_users": len(tables["profiles"]),
        "raffle_counts": {
            "total": len(tables["raffles"]),
            "open": sum(1 for r in tables["raffles"] if r["status"] == "open"),
        },
    }


def _json_default(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def write_dataset(path: Path, dataset: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(dataset, f, indent=2, default=_json_default)


def _copy_into_db(dsn: str, tables: Dict[str, List[Dict[str, Any]]]) -> int:
    """Replace the platform tables' contents with `tables`; returns rows loaded."""
    loaded = 0
    with psycopg.connect(dsn) as conn:
        with conn.cursor() as cur:
            cur.execute(
                "TRUNCATE TABLE " + ", ".join(f"public.{name}" for name in TABLE_COLUMNS) + " CASCADE"
            )
            for name, columns in TABLE_COLUMNS.items():
                with cur.copy(f"COPY public.{name} ({', '.join(columns)}) FROM STDIN") as copy:
                    for row in tables[name]:
                        copy.write_row([row.get(col) for col in columns])
                        loaded += 1
        conn.commit()
    return loaded


@app.command()
def main(
    users: int = typer.Option(1_000, "--users", "-u", min=1, help="Number of users to simulate."),
    days: int = typer.Option(60, "--days", min=1, help="Length of simulated history in days."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write a JSON dataset to this path.",
    ),
    dsn: str | None = typer.Option(
        None,
        "--dsn",
        help="Optional DSN override for Postgres.",
    ),
    no_load: bool = typer.Option(
        False,
        "--no-load",
        help="Skip loading into Postgres.",
    ),
) -> None:
    """
    Generate synthetic platform data and optionally load it into Postgres using COPY.
    """
    start = time.perf_counter()
    anchor = datetime.now(UTC).replace(microsecond=0)
    typer.echo(f"Simulating {users:,} users over {days} days (seed={seed})")
    tables = generate_tables(users=users, days=days, seed=seed, anchor=anchor)
    tx_count = len(tables["wallet_transactions"])
    typer.echo(
        f"Generated {tx_count:,} wallet transactions in {time.perf_counter() - start:.2f}s"
    )

    if output:
        write_dataset(output, to_dataset(tables))
        typer.echo(f"Dataset written to {output}")

    if no_load:
        typer.echo("Skipping load (no-load flag set).")
        return

    load_start = time.perf_counter()
    typer.echo("Loading tables into Postgres via COPY...")
    loaded = _copy_into_db(dsn or build_dsn(), tables)
    typer.echo(f"Loaded {loaded:,} rows in {time.perf_counter() - load_start:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
