#!/usr/bin/env python3
"""Fetch every incident page by page with offset pagination.

Pagination stays on the caller's side; the connection issues one request per page.
"""

from __future__ import annotations

from pagerun import ConnectionOptions, PagerDutyConnection, RequestOptions

PAGE_SIZE = 10


def fetch_all_incidents(pagerduty: PagerDutyConnection, **filters) -> list[dict]:
    incidents: list[dict] = []
    offset = 0
    while True:
        page = pagerduty.get_incidents(
            RequestOptions(query_params={**filters, "limit": PAGE_SIZE, "offset": offset})
        )
        batch = page.get("incidents") or []
        incidents.extend(batch)
        if not page.get("more", len(batch) == PAGE_SIZE):
            return incidents
        offset += PAGE_SIZE
        print(f"Fetched page with {len(batch)} incidents, total: {len(incidents)}")


def main() -> None:
    with PagerDutyConnection(options=ConnectionOptions(timeout=60.0)) as pagerduty:
        incidents = fetch_all_incidents(pagerduty, statuses=["triggered", "acknowledged"])
    print(f"Total incidents fetched: {len(incidents)}")


if __name__ == "__main__":
    main()
