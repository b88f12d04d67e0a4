"""
Locust Load Test Suite

Tokens are minted locally, so the server must run with the same SECRET_KEY
and FACILITY_TIMEZONE as this process. The test start inserts the accounts
those tokens name (ids 9999-10999) through DATABASE_URL_SYNC, so point it at
the server's database.

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overbooking
  locust -f locustfile.py --tags throughput   # Test cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import itertools
import random
from datetime import date, timedelta

from locust import HttpUser, task, between, tag, events
from sqlalchemy import create_engine
from sqlalchemy.dialects.postgresql import insert

from facility_booking.core.config import get_settings
from facility_booking.core.security import ROLE_ADMINISTRATOR, ROLE_USER, create_access_token
from facility_booking.models import User
from facility_booking.services.slot_clock import SlotClock

CONTESTED_LANE = 1
SESSION_IDS = []

# Reservations reference users.id, so tokens are only minted for seeded ids
LOAD_ADMIN_ID = 9_999
LOAD_USER_IDS = range(10_000, 11_000)
_user_ids = itertools.cycle(LOAD_USER_IDS)

clock = SlotClock()
target_day = date.today() + timedelta(days=7)
CONTESTED_SLOT = clock.enumerate_slots(target_day)[0]


def seed_load_users() -> None:
    """Insert the load-test accounts through DATABASE_URL_SYNC; existing ids are kept."""
    rows = [
        {"id": user_id, "email": f"load{user_id}@example.com", "username": f"load{user_id}", "role_id": ROLE_USER}
        for user_id in LOAD_USER_IDS
    ]
    rows.append({
        "id": LOAD_ADMIN_ID,
        "email": f"load{LOAD_ADMIN_ID}@example.com",
        "username": f"load{LOAD_ADMIN_ID}",
        "role_id": ROLE_ADMINISTRATOR,
    })

    engine = create_engine(get_settings().DATABASE_URL_SYNC)
    try:
        with engine.begin() as conn:
            conn.execute(insert(User).on_conflict_do_nothing(index_elements=["id"]), rows)
    finally:
        engine.dispose()


def user_headers() -> dict:
    token = create_access_token(next(_user_ids), ROLE_USER)
    return {"Authorization": f"Bearer {token}"}


def admin_headers() -> dict:
    token = create_access_token(LOAD_ADMIN_ID, ROLE_ADMINISTRATOR)
    return {"Authorization": f"Bearer {token}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    seed_load_users()
    print("\n" + "=" * 60)
    print(f"Contested slot: lane {CONTESTED_LANE} at {CONTESTED_SLOT.isoformat()}")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> one lane slot

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM reservations WHERE lane_id = 1 AND slot_start = X;
    Should be <= the lane's capacity
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = user_headers()

    @tag("concurrency")
    @task
    def reserve_contested_slot(self):
        """All users fight for the same slot."""
        with self.client.post(f"/api/v1/lanes/{CONTESTED_LANE}/reservations",
            json={"slot_start": CONTESTED_SLOT.isoformat()},
            headers=self.headers,
            name="/api/v1/lanes/{id}/reservations",
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: full or already booked
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: Stop Redis, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def day_grid_cached(self):
        day = target_day + timedelta(days=random.randint(0, 6))
        self.client.get(f"/api/v1/availability/{day.isoformat()}",
            name="/api/v1/availability/{day} [cached]")

    @tag("throughput", "read")
    @task(3)
    def list_sessions_cached(self):
        self.client.get("/api/v1/sessions/", name="/api/v1/sessions/ [cached]")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = user_headers()

    def _expect(self, resp, *codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_lane(self):
        with self.client.post("/api/v1/lanes/999999/reservations",
            json={"slot_start": CONTESTED_SLOT.isoformat()},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, 404)

    @tag("edge")
    @task
    def off_grid_slot(self):
        with self.client.post(f"/api/v1/lanes/{CONTESTED_LANE}/reservations",
            json={"slot_start": (CONTESTED_SLOT + timedelta(minutes=10)).isoformat()},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, 422)

    @tag("edge")
    @task
    def range_outside_hours(self):
        with self.client.post(f"/api/v1/lanes/{CONTESTED_LANE}/ranges",
            json={"day": target_day.isoformat(), "start_time": "03:00", "end_time": "04:00"},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, 422)

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(f"/api/v1/lanes/{CONTESTED_LANE}/reservations",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, 400, 422)

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(f"/api/v1/lanes/{CONTESTED_LANE}/reservations",
            json={"slot_start": CONTESTED_SLOT.isoformat()},
            catch_response=True
        ) as resp:
            self._expect(resp, 401)


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Mostly browsing the grid, some lane and session bookings, rare session
    creation by administrators.
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = user_headers()
        self.admin_headers = admin_headers()

    @task(50)
    def browse_grid(self):
        self.client.get(f"/api/v1/availability/{target_day.isoformat()}",
            name="/api/v1/availability/{day}")

    @task(20)
    def browse_sessions(self):
        resp = self.client.get("/api/v1/sessions/")
        if resp.status_code == 200:
            for session in resp.json().get("sessions", []):
                if session["id"] not in SESSION_IDS:
                    SESSION_IDS.append(session["id"])

    @task(10)
    def reserve_lane(self):
        slot = random.choice(clock.enumerate_slots(target_day))
        with self.client.post(f"/api/v1/lanes/{random.randint(1, 6)}/reservations",
            json={"slot_start": slot.isoformat()},
            headers=self.headers,
            name="/api/v1/lanes/{id}/reservations",
            catch_response=True
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()

    @task(5)
    def reserve_session(self):
        if SESSION_IDS:
            with self.client.post(f"/api/v1/sessions/{random.choice(SESSION_IDS)}/reservations",
                headers=self.headers,
                name="/api/v1/sessions/{id}/reservations",
                catch_response=True
            ) as resp:
                if resp.status_code in (201, 404, 409):
                    resp.success()

    @task(1)
    def create_session(self):
        start = random.choice(clock.enumerate_slots(target_day)[:-2])
        resp = self.client.post("/api/v1/sessions/",
            json={
                "title": f"Session {random.randint(1, 10000)}",
                "start": start.isoformat(),
                "end": (start + timedelta(hours=1)).isoformat(),
                "available_slots": random.randint(5, 20),
            },
            headers=self.admin_headers)
        if resp.status_code == 201:
            SESSION_IDS.append(resp.json()["id"])
