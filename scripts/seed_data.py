#!/usr/bin/env python3
"""
Fill a running Taskboard server with random users and tasks.

Usage:
    python scripts/seed_data.py [--url http://localhost:8000] [--users 20] [--tasks 100]

Everything goes through the HTTP API, so the server's reconciliation keeps
pendingTasks and assignedUser in step. About half the tasks are completed;
the rest are assigned to a random user or left unassigned.
"""

import asyncio
import random
import sys
from datetime import UTC, datetime, timedelta

import httpx

FIRST_NAMES = ["Ada", "Grace", "Alan", "Edsger", "Barbara", "Donald", "Frances", "Ken", "Radia", "Tim"]
LAST_NAMES = ["Lovelace", "Hopper", "Turing", "Dijkstra", "Liskov", "Knuth", "Allen", "Thompson", "Perlman", "Lee"]
TASK_WORDS = ["write", "review", "deploy", "test", "design", "refactor", "document", "benchmark", "fix", "plan"]


def parse_args(args: list[str]) -> dict:
    result = {"url": "http://localhost:8000", "users": 20, "tasks": 100}
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("--url", "--users", "--tasks") and i + 1 < len(args):
            value = args[i + 1]
            result[arg[2:]] = value if arg == "--url" else int(value)
            i += 1
        elif arg in ("--help", "-h"):
            print(__doc__)
            sys.exit(0)
        else:
            print(f"Unknown option: {arg}")
            sys.exit(1)
        i += 1
    return result


async def seed(base_url: str, n_users: int, n_tasks: int) -> None:
    async with httpx.AsyncClient(base_url=base_url, timeout=10.0) as client:
        users = []
        for i in range(n_users):
            name = f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}"
            email = f"{name.lower().replace(' ', '.')}.{i}@example.com"
            res = await client.post("/api/users", json={"name": name, "email": email})
            res.raise_for_status()
            users.append(res.json()["data"])

        now = datetime.now(UTC)
        for i in range(n_tasks):
            body = {
                "name": f"{random.choice(TASK_WORDS)} #{i}",
                "description": "Seeded task",
                "deadline": (now + timedelta(days=random.randint(-10, 60))).isoformat(),
                "completed": random.random() < 0.5,
            }
            if users and random.random() < 0.6:
                body["assignedUser"] = random.choice(users)["_id"]
            res = await client.post("/api/tasks", json=body)
            res.raise_for_status()

    print(f"Created {n_users} users and {n_tasks} tasks at {base_url}")


def main():
    args = parse_args(sys.argv[1:])
    asyncio.run(seed(args["url"], args["users"], args["tasks"]))


if __name__ == "__main__":
    main()
