import unittest
from datetime import datetime
from unittest.mock import patch

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from fastapi.testclient import TestClient

from backend.analytics import server
from backend.analytics.activities import ActivityUser, AssetPurchaseActivity
from backend.analytics.configuration import AnalyticsConfig, AuthConfig
from backend.analytics.models import BucketValue, RankedItem
from backend.analytics.repository import AnalyticsRepository, MetricFetchError, SQLAnalyticsRepository
from backend.analytics.service import AnalyticsService

NOW = datetime(2024, 3, 10, 15, 30)


class _StubRepo(AnalyticsRepository):
    def count_users(self, role, created_before=None):
        return 100 if created_before is not None else 125

    def count_assets(self, created_before=None):
        return 0

    def sum_revenue(self, start, end=None):
        return 0.0

    def user_registrations(self, role, granularity, since):
        return [BucketValue("2024-03-07", 1)] if role == "student" else []

    def asset_purchases(self, tier, granularity, since):
        return []

    def revenue_by_bucket(self, granularity, since):
        return [BucketValue("2024-03-10", 19.5)]

    def activity_totals(self):
        return {"chats": 1, "diary_pages": 2, "forums": 3, "asset_usage": 4, "awards": 5}

    def usage_by_asset(self):
        return [RankedItem(entity_id=index, label=f"asset-{index}", value=value) for index, value in enumerate([10, 50, 5, 30, 1])]

    def usage_by_category(self):
        return []

    def recent_asset_purchases(self, limit):
        user = ActivityUser(id=1, email="alice@example.com", first_name="Alice", last_name="Ng")
        return [AssetPurchaseActivity(id=3, user=user, timestamp=datetime(2024, 3, 9, 9), asset_name="Sea")]

    def recent_chat_messages(self, limit):
        return []

    def recent_diary_entries(self, limit):
        return []

    def recent_forum_posts(self, limit):
        return []

    def recent_awards(self, limit):
        return []


class _BrokenRepo(_StubRepo):
    def count_users(self, role, created_before=None):
        raise MetricFetchError("count_users", RuntimeError("database is down"))


class AnalyticsServerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = AnalyticsConfig(auth=AuthConfig(disabled=True))
        server.app.dependency_overrides[server.get_config] = lambda: self.config
        server.app.dependency_overrides[server.get_service] = lambda: AnalyticsService(_StubRepo(), self.config, clock=lambda: NOW)
        self.client = TestClient(server.app)

    def tearDown(self) -> None:
        server.app.dependency_overrides.clear()

    def test_health(self) -> None:
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_dashboard_envelope(self) -> None:
        response = self.client.get("/analytics/dashboard")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["data"]["students"]["percentChange"], 25.0)
        self.assertEqual(body["data"]["assets"], {"count": 0, "previousCount": 0, "percentChange": 0})
        self.assertIn("previousAmount", body["data"]["revenue"])

    def test_user_growth_week(self) -> None:
        response = self.client.get("/analytics/users/growth", params={"period": "week"})

        data = response.json()["data"]
        self.assertEqual(len(data["labels"]), 7)
        self.assertEqual(data["datasets"][0]["data"], [0, 0, 0, 1, 0, 0, 0])
        self.assertEqual(data["datasets"][0]["borderColor"], "#4F46E5")
        self.assertTrue(data["datasets"][0]["fill"])

    def test_invalid_period_is_not_rejected(self) -> None:
        response = self.client.get("/analytics/revenue", params={"period": "century"})

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(len(data["labels"]), 30)
        self.assertEqual(data["totalRevenue"], 19.5)

    def test_top_assets_limit(self) -> None:
        response = self.client.get("/analytics/assets/top", params={"limit": 3})

        data = response.json()["data"]
        self.assertEqual(data["values"], [50, 30, 10])
        self.assertEqual(len(data["colors"]), 3)

    def test_invalid_limit_falls_back(self) -> None:
        response = self.client.get("/analytics/assets/top", params={"limit": "-4"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["data"]["values"]), 5)

    def test_empty_category_ranking(self) -> None:
        response = self.client.get("/analytics/assets/categories/top")

        self.assertEqual(response.json()["data"], {"labels": [], "values": [], "colors": []})

    def test_distribution_and_usage(self) -> None:
        distribution = self.client.get("/analytics/activity/distribution").json()["data"]
        usage = self.client.get("/analytics/assets/usage").json()["data"]

        self.assertEqual(distribution["values"], [1, 2, 3, 4, 5])
        self.assertEqual(len(usage["labels"]), 6)
        self.assertEqual([dataset["label"] for dataset in usage["datasets"]], ["Free Assets", "Premium Assets"])

    def test_recent_activities(self) -> None:
        response = self.client.get("/analytics/activities/recent", params={"limit": 10})

        items = response.json()["data"]
        self.assertEqual(items[0]["type"], "asset_purchase")
        self.assertEqual(items[0]["user"], "Alice Ng")
        self.assertEqual(items[0]["asset"], "Sea")
        self.assertEqual(items[0]["timestamp"], "2024-03-09T09:00:00")

    def test_storage_failure_returns_500_envelope(self) -> None:
        server.app.dependency_overrides[server.get_service] = lambda: AnalyticsService(_BrokenRepo(), self.config, clock=lambda: NOW)

        response = self.client.get("/analytics/dashboard")

        self.assertEqual(response.status_code, 500)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["message"], "Error getting dashboard stats")
        self.assertIn("database is down", body["error"])

    def test_unconfigured_storage_returns_500_envelope(self) -> None:
        server.app.dependency_overrides.pop(server.get_service)

        with patch.object(server, "repository", None):
            response = self.client.get("/analytics/dashboard")

        self.assertEqual(response.status_code, 500)
        self.assertFalse(response.json()["success"])

    def test_admin_token_is_enforced_when_configured(self) -> None:
        self.config = AnalyticsConfig(auth=AuthConfig(admin_token="s3cret"))

        missing = self.client.get("/analytics/dashboard")
        wrong = self.client.get("/analytics/dashboard", headers={"Authorization": "Bearer nope"})
        allowed = self.client.get("/analytics/dashboard", headers={"Authorization": "Bearer s3cret"})

        self.assertEqual(missing.status_code, 401)
        self.assertFalse(missing.json()["success"])
        self.assertEqual(wrong.status_code, 403)
        self.assertEqual(allowed.status_code, 200)

    def test_missing_admin_token_refuses_requests(self) -> None:
        self.config = AnalyticsConfig()

        anonymous = self.client.get("/analytics/dashboard")
        bearer = self.client.get("/analytics/dashboard", headers={"Authorization": "Bearer anything"})

        self.assertEqual(anonymous.status_code, 503)
        self.assertEqual(anonymous.json(), {"success": False, "message": "Admin authentication is not configured"})
        self.assertEqual(bearer.status_code, 503)

    def test_disabled_check_ignores_configured_token(self) -> None:
        self.config = AnalyticsConfig(auth=AuthConfig(admin_token="s3cret", disabled=True))

        response = self.client.get("/analytics/dashboard")

        self.assertEqual(response.status_code, 200)

    def test_storage_failure_is_logged_once(self) -> None:
        engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
        repo = SQLAnalyticsRepository(engine)
        server.app.dependency_overrides[server.get_service] = lambda: AnalyticsService(repo, self.config, clock=lambda: NOW)

        with self.assertLogs("backend.analytics", level="WARNING") as logs:
            response = self.client.get("/analytics/dashboard")
        engine.dispose()

        self.assertEqual(response.status_code, 500)
        self.assertEqual(len(logs.records), 1)
        self.assertEqual(logs.records[0].name, "backend.analytics.server")
        self.assertEqual(logs.records[0].getMessage(), "Error getting dashboard stats")
