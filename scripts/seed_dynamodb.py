"""Create the EnrollProof DynamoDB tables and optionally seed a demo employer.

Usage:
    python scripts/seed_dynamodb.py --endpoint-url http://localhost:4566 --table-suffix -dev --demo
"""

from __future__ import annotations

import argparse
from datetime import date
from typing import Any

import boto3

from enrollproof.core.protocols import IRecordStore
from enrollproof.models.plan_year import PlanYear
from enrollproof.persistence.dynamodb_backend import DynamoDBRecordStore
from enrollproof.persistence.tables import EMAIL_TEMPLATES, EMPLOYERS, TABLE_KEYS, physical_name
from enrollproof.services.roster.plan_year import ensure_active_plan_year

DEMO_EMPLOYER_ID = "demo-employer"
DEMO_TEMPLATE_ID = "enrollment-notice-default"

DEMO_TEMPLATE_BODY = """\
Hi {{employee.first_name}},

{{employer.name}} is enrolling eligible employees in a new benefits program effective {{program.effective_date}}.

Review your notice here: {{links.notice}}
Learn more: {{links.learn_more}}

If you do not wish to participate, opt out by {{program.opt_out_deadline}}.

Questions? Contact {{employer.support_email}}."""


def create_tables(ddb: Any, suffix: str = "") -> list[str]:
    """Create one PK/SK table per entity. Skips tables that already exist."""
    client = ddb.meta.client
    existing = client.list_tables().get("TableNames", [])

    created: list[str] = []
    for table in TABLE_KEYS:
        table_name = physical_name(table, suffix)
        if table_name in existing:
            print(f"  Table {table_name} already exists, skipping")
            continue
        client.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        created.append(table_name)
        print(f"  Created table {table_name}")
    return created


def seed_demo_data(store: IRecordStore, effective_date: date = date(2026, 1, 1)) -> PlanYear:
    """Demo employer, its active plan year and a default enrollment notice template."""
    store.upsert(EMPLOYERS, [{
        "id": DEMO_EMPLOYER_ID,
        "name": "Demo Employer",
        "support_email": "benefits@demo-employer.example",
        "sender_email": "",
        "effective_date": effective_date.isoformat(),
        "opt_out_deadline": date(effective_date.year, effective_date.month, 28).isoformat(),
    }], on_conflict=("id",))
    print(f"  Seeded employer {DEMO_EMPLOYER_ID}")

    store.upsert(EMAIL_TEMPLATES, [{
        "id": DEMO_TEMPLATE_ID,
        "name": "Enrollment notice",
        "category": "enrollment",
        "subject": "Your {{employer.name}} benefits notice",
        "body": DEMO_TEMPLATE_BODY,
        "is_active": True,
    }], on_conflict=("id",))
    print(f"  Seeded template {DEMO_TEMPLATE_ID}")

    plan_year = ensure_active_plan_year(store, DEMO_EMPLOYER_ID, effective_date)
    print(f"  Active plan year {plan_year.start_date} to {plan_year.end_date}")
    return plan_year


def main() -> None:
    parser = argparse.ArgumentParser(description="Create DynamoDB tables for EnrollProof")
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--table-suffix", default="", help="Table name suffix (e.g. -dev)")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    parser.add_argument("--demo", action="store_true", help="Seed a demo employer and plan year")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating tables...")
    create_tables(ddb, suffix=args.table_suffix)

    if args.demo:
        print("Seeding demo data...")
        store = DynamoDBRecordStore(
            table_suffix=args.table_suffix, region=args.region, endpoint_url=args.endpoint_url,
        )
        seed_demo_data(store)

    print("Done!")


if __name__ == "__main__":
    main()
