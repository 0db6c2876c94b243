#!/usr/bin/env python3
"""Live check: exercise every public method on PagerDutyConnection.

Needs PAGERDUTY_API_TOKEN (and optionally PAGERDUTY_API_URL) in the environment.
Write calls are only made when PAGERDUTY_SERVICE_ID is set.
"""

from __future__ import annotations

import os
import sys

from pagerun import PagerDutyConnection, PagerDutyConnectionError, RequestOptions

passed: list[str] = []
failed: list[tuple[str, str]] = []
skipped: list[tuple[str, str]] = []


def ok(name: str, result: object = None) -> None:
    tag = type(result).__name__ if result is not None else "None"
    print(f"  PASS  {name}  -> {tag}")
    passed.append(name)


def fail(name: str, err: Exception) -> None:
    msg = str(err)[:200]
    print(f"  FAIL  {name}  -> {msg}")
    failed.append((name, msg))


def skip(name: str, reason: str) -> None:
    print(f"  SKIP  {name}  ({reason})")
    skipped.append((name, reason))


def run(name: str, fn, *, allowed: set[int] | None = None):
    """Run fn(), record pass/fail/expected-error."""
    try:
        result = fn()
        ok(name, result)
        return result
    except PagerDutyConnectionError as e:
        if allowed and e.status in allowed:
            ok(name, e)
        else:
            fail(name, e)
        return None


def main() -> None:
    pagerduty = PagerDutyConnection()
    first_page = RequestOptions(query_params={"limit": 1})

    print("\n=== Read ===")
    incidents = run("get_incidents", lambda: pagerduty.get_incidents(first_page))
    run("get_users", lambda: pagerduty.get_users(first_page))
    run("get_services", lambda: pagerduty.get_services(first_page))
    run("get_schedules", lambda: pagerduty.get_schedules(first_page))
    run("get_escalation_policies", lambda: pagerduty.get_escalation_policies(first_page))
    run(
        "get with array filter",
        lambda: pagerduty.get("incidents", RequestOptions(query_params={"statuses": ["triggered"], "limit": 1})),
    )

    if incidents and incidents.get("incidents"):
        incident_id = incidents["incidents"][0]["id"]
        run("get incident", lambda: pagerduty.get(f"/incidents/{incident_id}"))
    else:
        skip("get incident", "no incident available")

    run("get missing incident", lambda: pagerduty.get("incidents/INVALID_ID"), allowed={404})

    print("\n=== Write ===")
    service_id = os.getenv("PAGERDUTY_SERVICE_ID")
    from_email = os.getenv("PAGERDUTY_FROM_EMAIL")
    if service_id and from_email:
        headers = {"From": from_email}
        created = run(
            "post incident",
            lambda: pagerduty.post(
                "incidents",
                RequestOptions(
                    headers=headers,
                    body={
                        "incident": {
                            "type": "incident",
                            "title": "Test incident from Pagerun",
                            "service": {"id": service_id, "type": "service_reference"},
                        }
                    },
                ),
            ),
        )
        if created:
            incident_id = created["incident"]["id"]
            run(
                "put incident",
                lambda: pagerduty.put(
                    f"incidents/{incident_id}",
                    RequestOptions(headers=headers, body={"incident": {"type": "incident_reference", "status": "resolved"}}),
                ),
            )
    else:
        skip("post incident", "PAGERDUTY_SERVICE_ID and PAGERDUTY_FROM_EMAIL not set")
        skip("put incident", "PAGERDUTY_SERVICE_ID and PAGERDUTY_FROM_EMAIL not set")

    run("delete missing tag", lambda: pagerduty.delete("tags/INVALID_ID"), allowed={404})

    pagerduty.close()

    print("\n" + "=" * 60)
    print(f"PASSED: {len(passed)}   FAILED: {len(failed)}   SKIPPED: {len(skipped)}")
    if failed:
        print("\nFailed methods:")
        for name, err in failed:
            print(f"  - {name}: {err}")
    print("=" * 60)

    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
