"""Seed script for development data.

Populates the in-memory employee directory of a running server and walks one
uniform grant through the wizard.

Run with:  python -m leave_grant.seed [base_url]
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any

import httpx

logger = logging.getLogger(__name__)

BASE_URL = "http://localhost:8000"
COMPANY_ID = "00000000-0000-0000-0000-000000000001"
ADMIN_USER_ID = "00000000-0000-0000-0000-000000000001"

HEADERS = {
    "Content-Type": "application/json",
    "X-Company-Id": COMPANY_ID,
    "X-User-Id": ADMIN_USER_ID,
    "X-Role": "admin",
}

EMPLOYEES = [
    {"id": "00000000-0000-0000-0000-000000000002", "name": "Alice Smith", "email": "alice@example.com", "department": "Sales"},
    {"id": "00000000-0000-0000-0000-000000000003", "name": "Bob Johnson", "email": "bob@example.com", "department": "Marketing"},
    {"id": "00000000-0000-0000-0000-000000000004", "name": "Carol Lee", "email": "carol@example.com", "department": "Development"},
    {"id": "00000000-0000-0000-0000-000000000005", "name": "David Wilson", "email": "david@example.com", "department": "Sales"},
    {"id": "00000000-0000-0000-0000-000000000006", "name": "Eva Brown", "email": "eva@example.com", "department": "HR"},
]

SAMPLE_GRANT: dict[str, Any] = {
    "title": "Annual Leave 2025 - Sales",
    "leave_type_id": "annual",
    "mode": "UNIFORM",
    "days_granted": "25",
    "period_start": "2025-01-01",
    "period_end": "2025-12-31",
    "carryover_rule": {"kind": "MONTHS_AFTER_PERIOD_END", "months": 3},
}


def _url(path: str) -> str:
    return f"/companies/{COMPANY_ID}{path}"


async def seed_employees(client: httpx.AsyncClient) -> None:
    for employee in EMPLOYEES:
        payload = {k: v for k, v in employee.items() if k != "id"}
        resp = await client.put(_url(f"/employees/{employee['id']}"), json=payload)
        resp.raise_for_status()
    logger.info("Seeded %d employees", len(EMPLOYEES))


async def seed_sample_grant(client: httpx.AsyncClient) -> None:
    """Drive the wizard through all six steps for the Sales department."""
    resp = await client.post(_url("/grant-wizards"))
    resp.raise_for_status()
    wizard_url = _url(f"/grant-wizards/{resp.json()['id']}")

    steps: list[tuple[str, str, dict[str, Any] | None]] = [
        ("PATCH", "", {"title": SAMPLE_GRANT["title"]}),
        ("POST", "/advance", None),
        ("PATCH", "", {"leave_type_id": SAMPLE_GRANT["leave_type_id"]}),
        ("POST", "/advance", None),
        ("POST", "/select-all?department=Sales", None),
        ("POST", "/advance", None),
        ("PATCH", "", {"mode": SAMPLE_GRANT["mode"]}),
        ("POST", "/advance", None),
        ("PATCH", "", {k: SAMPLE_GRANT[k] for k in ("days_granted", "period_start", "period_end", "carryover_rule")}),
        ("POST", "/advance", None),
    ]
    for method, path, body in steps:
        resp = await client.request(method, wizard_url + path, json=body)
        resp.raise_for_status()

    resp = await client.post(wizard_url + "/submit")
    if resp.status_code == 409:
        logger.info("Sample grant already exists, skipping")
        await client.delete(wizard_url)
        return
    resp.raise_for_status()
    grant = resp.json()
    logger.info("Created grant %s with %d line(s)", grant["id"], len(grant["lines"]))
    await client.delete(wizard_url)


async def main(base_url: str = BASE_URL) -> None:
    async with httpx.AsyncClient(base_url=base_url, headers=HEADERS, timeout=30.0) as client:
        try:
            await seed_employees(client)
            await seed_sample_grant(client)
        except httpx.HTTPError:
            logger.exception("Seeding failed against %s", base_url)
            sys.exit(1)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else BASE_URL))
