"""
Tests for fare resolution and fare configuration (/sysad/settings, /sysad/routes).

Priority for a live payment: explicit fare > route fare > system fare >
configured default. The first positive value wins.
"""

from nucash.services import settings_service


class TestFareResolution:
    """Fare priority through the pay endpoint."""

    async def test_priority_explicit_route_global_default(self, client, make_account):
        """Each source is used only when every source above it is missing."""
        account = await make_account(balance_cents=10000)
        await client.put("/sysad/settings", json={"current_fare_cents": 1200})
        await client.put("/sysad/routes/NORTH", json={"name": "North Loop", "fare_cents": 1000})

        explicit = await client.post(
            "/shuttle/pay",
            json={"rfid_uid": account["rfid_uid"], "fare_cents": 800, "route_id": "NORTH"},
        )
        assert explicit.json()["fare_cents"] == 800

        route = await client.post(
            "/shuttle/pay",
            json={"rfid_uid": account["rfid_uid"], "route_id": "NORTH"},
        )
        assert route.json()["fare_cents"] == 1000

        system = await client.post("/shuttle/pay", json={"rfid_uid": account["rfid_uid"]})
        assert system.json()["fare_cents"] == 1200

        await client.put("/sysad/settings", json={"current_fare_cents": None})
        default = await client.post("/shuttle/pay", json={"rfid_uid": account["rfid_uid"]})
        assert default.json()["fare_cents"] == 1500

    async def test_route_without_fare_falls_through(self, client, make_account):
        """A route with no fare set doesn't stop resolution."""
        account = await make_account(balance_cents=5000)
        await client.put("/sysad/settings", json={"current_fare_cents": 1100})
        await client.put("/sysad/routes/SOUTH", json={"name": "South Loop"})

        response = await client.post(
            "/shuttle/pay",
            json={"rfid_uid": account["rfid_uid"], "route_id": "SOUTH"},
        )
        assert response.json()["fare_cents"] == 1100

    async def test_unknown_route_falls_through(self, client, make_account):
        account = await make_account(balance_cents=5000)

        response = await client.post(
            "/shuttle/pay",
            json={"rfid_uid": account["rfid_uid"], "route_id": "NOWHERE"},
        )
        assert response.json()["fare_cents"] == 1500

    async def test_resolve_fare_service(self, db_session):
        """Service-level check of the same order."""
        await settings_service.update_system_settings(db_session, 1300, None)
        await settings_service.upsert_route(db_session, "EAST", "East Loop", 900)

        assert await settings_service.resolve_fare(db_session, 700, "EAST") == 700
        assert await settings_service.resolve_fare(db_session, None, "EAST") == 900
        assert await settings_service.resolve_fare(db_session, 0, "EAST") == 900
        assert await settings_service.resolve_fare(db_session) == 1300


class TestFareSettingsEndpoints:
    """Reading and writing the fare configuration."""

    async def test_settings_defaults(self, client):
        """With nothing stored the effective values are the configured defaults."""
        response = await client.get("/sysad/settings")
        assert response.status_code == 200
        assert response.json() == {
            "current_fare_cents": None,
            "negative_limit_cents": None,
            "effective_fare_cents": 1500,
            "effective_negative_limit_cents": -1400,
        }

    async def test_update_settings(self, client):
        response = await client.put(
            "/sysad/settings",
            json={"current_fare_cents": 2000, "negative_limit_cents": -1000},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["effective_fare_cents"] == 2000
        assert body["effective_negative_limit_cents"] == -1000

    async def test_positive_negative_limit_is_rejected(self, client):
        """The floor can't be above zero."""
        response = await client.put("/sysad/settings", json={"negative_limit_cents": 100})
        assert response.status_code == 422

    async def test_routes_listing(self, client):
        await client.put("/sysad/routes/B", json={"name": "B Loop", "fare_cents": 1000})
        await client.put("/sysad/routes/A", json={"name": "A Loop", "fare_cents": 1200})
        await client.put("/sysad/routes/A", json={"name": "A Loop", "fare_cents": 1300})

        response = await client.get("/sysad/routes")
        assert response.json() == [
            {"route_id": "A", "name": "A Loop", "fare_cents": 1300},
            {"route_id": "B", "name": "B Loop", "fare_cents": 1000},
        ]
