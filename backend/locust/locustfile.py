"""
Locust Load Test Suite

Seed a small activity first, e.g.:
  INSERT INTO activities (activity_id, title, capacity) VALUES ('loadtest', 'Load test', 10);

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overbooking
  locust -f locustfile.py --tags throughput   # Test availability cache
  locust -f locustfile.py --tags edge         # Test bad identifiers
  locust -f locustfile.py                     # All tests
"""

import os
import random
import uuid
from locust import HttpUser, task, between, tag, events

CONCURRENCY_ACTIVITY = os.environ.get("LOCUST_ACTIVITY", "loadtest")
SLOTS = int(os.environ.get("LOCUST_SLOTS", "5"))

# Shared state
ACTIVITY_KEYS = []


def new_subject():
    return f"load-{uuid.uuid4().hex[:12]}"


def time_slot(activity_id, slot_index):
    return f"{activity_id}-{slot_index}"


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: concurrency target is activity '{CONCURRENCY_ACTIVITY}'")
    print("=" * 60)


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    print("\nVerify afterwards (reserved must be <= capacity):")
    print("  openday summary")
    print("  openday reconcile   # exit code 2 means an activity was overbooked")


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many subjects -> one small activity

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM reservations WHERE activity_id = 'loadtest';
    Should be <= capacity
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.subject_id = new_subject()

    @tag("concurrency")
    @task
    def reserve_last_seats(self):
        """All subjects fight for the same seats across all time slots."""
        with self.client.post("/api/v1/reservations/",
            json={
                "subject_id": self.subject_id,
                "activity_key": CONCURRENCY_ACTIVITY,
                "time_slot_id": time_slot(CONCURRENCY_ACTIVITY, random.randint(1, SLOTS)),
            },
            name="/api/v1/reservations/ [contended]",
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: full
            elif resp.status_code == 503:
                resp.success()  # Contention, client may retry
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("concurrency")
    @task
    def move_or_cancel(self):
        """Churn: free a seat now and then so admission keeps racing."""
        if random.random() < 0.3:
            self.client.request("DELETE", "/api/v1/reservations/",
                json={"subject_id": self.subject_id, "activity_key": CONCURRENCY_ACTIVITY})


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. CACHE_BACKEND=redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. CACHE_BACKEND=memory with several workers, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_availability_cached(self):
        """Hammer the availability page."""
        resp = self.client.get("/api/v1/availability", name="/api/v1/availability [cached]")
        if resp.status_code == 200 and not ACTIVITY_KEYS:
            ACTIVITY_KEYS.extend({key.rsplit(":", 1)[0] for key in resp.json()["slots"]})

    @tag("throughput", "read")
    @task(3)
    def get_activity_availability(self):
        if ACTIVITY_KEYS:
            self.client.get(f"/api/v1/availability/{random.choice(ACTIVITY_KEYS)}",
                name="/api/v1/availability/{activity}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        """Monitor system health."""
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad identifiers

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.subject_id = new_subject()

    def _reserve(self, payload, expected):
        with self.client.post("/api/v1/reservations/", json=payload, catch_response=True) as resp:
            if resp.status_code in expected:
                resp.success()
            else:
                resp.failure(f"Expected {expected}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_activity(self):
        self._reserve(
            {"subject_id": self.subject_id, "activity_key": "no-such-activity", "time_slot_id": "x-1"},
            [404],
        )

    @tag("edge")
    @task
    def slot_without_number(self):
        self._reserve(
            {"subject_id": self.subject_id, "activity_key": CONCURRENCY_ACTIVITY, "time_slot_id": "morning"},
            [422],
        )

    @tag("edge")
    @task
    def slot_out_of_range(self):
        self._reserve(
            {
                "subject_id": self.subject_id,
                "activity_key": CONCURRENCY_ACTIVITY,
                "time_slot_id": time_slot(CONCURRENCY_ACTIVITY, 99),
            },
            [422],
        )

    @tag("edge")
    @task
    def unknown_row_id(self):
        self._reserve(
            {"subject_id": self.subject_id, "activity_key": 999999, "time_slot_id": 1},
            [404],
        )

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/reservations/",
            data="not json at all",
            catch_response=True
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")
