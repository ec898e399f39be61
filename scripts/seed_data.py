#!/usr/bin/env python3
"""
Seed script — creates a realistic dataset for trying out the API.

Creates:
  • 8 users (each with its own cookie session)
  • A follow graph (each user follows 3 others)
  • 3 pins per user (24 total), each with a small placeholder image
  • A handful of comments per pin

Run against a running API (with MinIO up):
  python scripts/seed_data.py --api-url http://localhost:5000

Credentials are printed so you can log in from the frontend.
"""
import argparse
import base64
import random
import time

import httpx


PASSWORD = "pinboard123"

BASE_USERS = [
    ("Alice Chen", "alice@example.com"),
    ("Bob Martinez", "bob@example.com"),
    ("Carol Singh", "carol@example.com"),
    ("Dave Kim", "dave@example.com"),
    ("Eve Johnson", "eve@example.com"),
    ("Frank Williams", "frank@example.com"),
    ("Grace Li", "grace@example.com"),
    ("Henry Brown", "henry@example.com"),
]

SAMPLE_PINS = [
    ("Cabin in the woods", "Weekend getaway inspiration: cedar cladding and a wood stove."),
    ("Sourdough crumb", "Day three of the starter. Finally an open crumb."),
    ("Desk setup", "Monitor arm, walnut shelf, cable tray. Zero clutter."),
    ("Tiny balcony garden", "Tomatoes, basil and chillies in a one-metre strip."),
    ("Watercolour sky", "Wet-on-wet gradients, ten minutes, no sketch."),
    ("Reading nook", "Window seat cushions made from an old mattress topper."),
    ("Trail running shoes", "Rock plate vs no rock plate after 300 km."),
    ("Ceramic mugs", "First glaze firing. Two cracked, four survived."),
    ("Minimal wardrobe", "Thirty items for the whole autumn."),
    ("Bike commute", "Panniers, fenders and a dynamo light. Rain-proof."),
    ("Neon signage", "Shop fronts from the night market."),
    ("Plant shelf", "Pothos taking over the whole bookcase."),
]

SAMPLE_COMMENTS = [
    "Love this!",
    "Saving for later.",
    "Where did you get that?",
    "So clean.",
    "Trying this next weekend.",
    "The colours are great.",
]

# 1×1 PNG — MinIO only needs some image bytes
PLACEHOLDER_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


def wait_for_api(api_url: str, retries: int = 15) -> None:
    print(f"Waiting for API at {api_url} ...")
    for _ in range(retries):
        try:
            if httpx.get(f"{api_url}/health", timeout=5).json().get("status") == "ok":
                print("  API is ready!\n")
                return
        except httpx.HTTPError:
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {api_url} after {retries} retries")


def open_session(api_url: str, name: str, email: str) -> tuple[httpx.Client, str]:
    """Register (or log in if the email is taken) and return a cookie-carrying client."""
    client = httpx.Client(base_url=api_url, timeout=10)
    resp = client.post("/api/user/register", json={"name": name, "email": email, "password": PASSWORD})
    if resp.status_code == 400:
        resp = client.post("/api/user/login", json={"email": email, "password": PASSWORD})
    resp.raise_for_status()
    return client, resp.json()["user"]["id"]


def main(api_url: str) -> None:
    wait_for_api(api_url)

    # ── Create users ─────────────────────────────────────────────────────
    print("Creating users...")
    sessions: dict[str, httpx.Client] = {}
    for name, email in BASE_USERS:
        try:
            client, uid = open_session(api_url, name, email)
        except httpx.HTTPStatusError as e:
            print(f"  ✗ Failed to create {email}: {e.response.text}")
            continue
        sessions[uid] = client
        print(f"  ✓ {email} ({uid})")

    if not sessions:
        print("No users created — aborting")
        return
    user_ids = list(sessions)

    # ── Create follow graph ───────────────────────────────────────────────
    print("\nCreating follow relationships...")
    follows = 0
    for follower_id, client in sessions.items():
        others = [u for u in user_ids if u != follower_id]
        for followee_id in random.sample(others, k=min(3, len(others))):
            resp = client.post(f"/api/user/follow/{followee_id}")
            # the toggle unfollows on a re-run; flip it back
            if resp.json().get("following") is False:
                client.post(f"/api/user/follow/{followee_id}")
            follows += 1
    print(f"  ✓ {follows} follow edges")

    # ── Create pins ───────────────────────────────────────────────────────
    print("\nCreating pins...")
    pin_ids: list[str] = []
    pool = random.sample(SAMPLE_PINS, k=len(SAMPLE_PINS)) * 2
    idx = 0
    for client in sessions.values():
        for _ in range(3):
            title, body = pool[idx % len(pool)]
            idx += 1
            resp = client.post(
                "/api/pin/new",
                data={"title": title, "pin": body},
                files={"file": ("placeholder.png", PLACEHOLDER_PNG, "image/png")},
            )
            if resp.status_code != 201:
                print(f"  HTTP {resp.status_code} creating pin: {resp.text}")
                continue
            pin_ids.append(resp.json()["pin"]["id"])
    print(f"  ✓ {len(pin_ids)} pins created")

    # ── Add comments ──────────────────────────────────────────────────────
    print("\nAdding comments...")
    comments = 0
    for pin_id in pin_ids:
        for uid in random.sample(user_ids, k=random.randint(0, min(3, len(user_ids)))):
            resp = sessions[uid].post(
                f"/api/pin/comment/{pin_id}",
                json={"comment": random.choice(SAMPLE_COMMENTS)},
            )
            if resp.status_code == 200:
                comments += 1
    print(f"  ✓ {comments} comments added")

    for client in sessions.values():
        client.close()

    # ── Print summary ─────────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("Seed complete!\n")
    print(f"# Log in as any seeded user with password '{PASSWORD}', e.g.:")
    print(f"  curl -s -c cookies.txt -X POST '{api_url}/api/user/login' \\")
    print(f"    -H 'Content-Type: application/json' \\")
    print(f"    -d '{{\"email\": \"{BASE_USERS[0][1]}\", \"password\": \"{PASSWORD}\"}}'\n")
    print(f"# List pins with that session:")
    print(f"  curl -s -b cookies.txt '{api_url}/api/pin/all' | python3 -m json.tool\n")
    print(f"# Check Jaeger traces: http://localhost:16686")
    print(f"# Check MinIO: http://localhost:9001 (minioadmin/minioadmin)")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Pinboard API")
    parser.add_argument("--api-url", default="http://localhost:5000", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)
