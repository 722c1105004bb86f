from __future__ import annotations

import os
import time

import requests
from rich import print
from rich.table import Table
from sqlalchemy import select

from agency_crm.db import SessionLocal
from agency_crm.models.enums import Role
from agency_crm.models.user import User

BASE = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")

def _headers(jwt: str | None) -> dict[str, str]:
    headers = {"content-type": "application/json"}
    if jwt:
        headers["authorization"] = f"bearer {jwt}"
    return headers

def post(path: str, *, jwt: str | None = None, json: dict | None = None) -> requests.Response:
    return requests.post(f"{BASE}{path}", headers=_headers(jwt), json=json, timeout=10)

def put(path: str, *, jwt: str | None = None, json: dict | None = None) -> requests.Response:
    return requests.put(f"{BASE}{path}", headers=_headers(jwt), json=json, timeout=10)

def get(path: str, *, jwt: str | None = None, params: dict | None = None) -> requests.Response:
    return requests.get(f"{BASE}{path}", headers=_headers(jwt), params=params, timeout=10)

def login(email: str) -> str:
    r = post("/auth/request-link", json={"email": email})
    r.raise_for_status()
    token = r.json()["token"]

    r2 = post("/auth/redeem", json={"token": token})
    r2.raise_for_status()
    return r2.json()["access_token"]

def promote(email: str, role: Role) -> None:
    # bootstrap only: the first manager has to come from somewhere
    with SessionLocal() as db:
        user = db.scalar(select(User).where(User.email == email))
        if user is None:
            raise RuntimeError(f"user {email} not found")
        user.role = role
        db.commit()

def wait_ready(timeout_s: float = 30.0) -> None:
    deadline = time.time() + timeout_s
    last_err: requests.RequestException | None = None

    while time.time() < deadline:
        try:
            r = get("/ready")
            if r.status_code == 200:
                return
        except requests.RequestException as e:
            last_err = e
        time.sleep(0.5)

    if last_err:
        raise RuntimeError(f"api not ready after {timeout_s}s (last error: {last_err})")
    raise RuntimeError(f"api not ready after {timeout_s}s")

def main() -> None:
    print("[bold]demo: auth -> client -> campaign -> dependent tasks -> cycle rejected -> gantt[/bold]")

    wait_ready()
    print("[green]ready ok[/green]")

    manager_email = "demo-manager@example.com"
    login(manager_email)
    promote(manager_email, Role.manager)
    jwt = login(manager_email)
    print("manager authed")

    r = post("/api/clients", jwt=jwt, json={"name": f"demo client {int(time.time())}"})
    r.raise_for_status()
    client_id = r.json()["id"]
    print("created client:", client_id)

    r = post("/api/campaigns", jwt=jwt, json={"client_id": client_id, "name": "demo campaign"})
    r.raise_for_status()
    campaign_id = r.json()["id"]
    put(f"/api/campaigns/{campaign_id}/status", jwt=jwt, json={"status": "active"}).raise_for_status()
    print("created campaign:", campaign_id)

    ids = []
    for title in ("brief", "design", "launch"):
        r = post("/api/tasks", jwt=jwt, json={"title": title, "campaign_id": campaign_id})
        r.raise_for_status()
        ids.append(r.json()["id"])
    brief, design, launch = ids

    post(f"/api/tasks/{design}/dependencies", jwt=jwt, json={"depends_on_id": brief}).raise_for_status()
    post(f"/api/tasks/{launch}/dependencies", jwt=jwt, json={"depends_on_id": design}).raise_for_status()
    print("linked brief <- design <- launch")

    r = post(f"/api/tasks/{brief}/dependencies", jwt=jwt, json={"depends_on_id": launch})
    if r.status_code != 400:
        raise RuntimeError(f"expected cycle rejection, got {r.status_code}: {r.text}")
    print("[yellow]cycle rejected:[/yellow]", r.json()["detail"])

    put(f"/api/tasks/{brief}/status", jwt=jwt, json={"status": "in_progress"}).raise_for_status()

    r = get("/api/tasks/gantt", jwt=jwt, params={"campaign_id": campaign_id})
    r.raise_for_status()

    table = Table(title="gantt")
    for col in ("title", "start", "end", "%", "waits on"):
        table.add_column(col)
    titles = {row["id"]: row["title"] for row in r.json()}
    for row in r.json():
        waits = ", ".join(titles.get(d, d) for d in row["dependency_ids"])
        table.add_row(row["title"], row["start"][:10], row["end"][:10], str(row["percent_complete"]), waits)
    print(table)
    print("[bold green]demo complete[/bold green]")

if __name__ == "__main__":
    main()
