from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from haulplan.errors import TransientUpstreamError
from haulplan.models.domain import Location, Operation, Rental
from haulplan.persistence.documents import InMemoryDocumentStore
from haulplan.services.geospatial import haversine_km
from haulplan.services.routing.directions_client import Directions

SP = ZoneInfo("America/Sao_Paulo")
ACCOUNT = "acc1"

BASE_LOCATION = Location(address="Base Centro", latitude=-23.5505, longitude=-46.6333)
CLIENT_LOCATION = Location(address="Rua das Flores, 100", latitude=-23.5600, longitude=-46.6500)


def seed_account(store, account_id=ACCOUNT):
    store.set(
        f"accounts/{account_id}",
        {
            "name": "Caçambas Teste",
            "rentalCounter": 0,
            "operationCounter": 0,
            "truckTypes": [{"id": "tt-roll", "name": "Roll-on"}, {"id": "tt-poli", "name": "Poliguindaste"}],
            "operationalCosts": [
                {"baseId": "base-1", "truckTypeId": "tt-roll", "value": 5.0},
                {"baseId": None, "truckTypeId": "tt-roll", "value": 3.0},
            ],
            "bases": [
                {
                    "id": "base-1",
                    "name": "Base Centro",
                    "location": {"address": BASE_LOCATION.address, "lat": BASE_LOCATION.latitude, "lng": BASE_LOCATION.longitude},
                }
            ],
        },
    )
    store.set(f"accounts/{account_id}/clients/client-1", {"name": "Construtora Alfa"})
    store.set(
        f"accounts/{account_id}/trucks/truck-1",
        {"name": "Caminhão 1", "type": "roll-on", "plate": "ABC1D23", "baseId": "base-1"},
    )


@pytest.fixture
def store():
    return InMemoryDocumentStore(max_attempts=32)


@pytest.fixture
def seeded_store(store):
    seed_account(store)
    return store


def make_rental(rental_date=None, days=3, **overrides):
    rental_date = rental_date or datetime(2024, 8, 15, 9, 0, tzinfo=SP)
    fields = dict(
        id=None,
        account_id=ACCOUNT,
        client_id="client-1",
        delivery_location=CLIENT_LOCATION,
        rental_date=rental_date,
        return_date=rental_date + timedelta(days=days),
        value=450.0,
        dumpster_ids=["dump-1"],
        truck_id="truck-1",
        assigned_to="driver-1",
        base_id="base-1",
    )
    fields.update(overrides)
    return Rental(**fields)


def make_operation(start_date=None, hours=2, **overrides):
    start_date = start_date or datetime(2024, 8, 15, 13, 0, tzinfo=SP)
    fields = dict(
        id=None,
        account_id=ACCOUNT,
        client_id="client-1",
        start_date=start_date,
        end_date=start_date + timedelta(hours=hours),
        destination_location=CLIENT_LOCATION,
        value=800.0,
        truck_id="truck-1",
        assigned_to="driver-1",
        base_id="base-1",
    )
    fields.update(overrides)
    return Operation(**fields)


class FakeDirections:
    """Straight-line directions at 30 km/h; addresses listed in ``fail_to`` raise."""

    def __init__(self, fail_to=(), speed_kmh=30.0):
        self.fail_to = set(fail_to)
        self.speed_kmh = speed_kmh
        self.calls = []

    def compute_route(self, origin, destination):
        self.calls.append((origin.address, destination.address))
        if destination.address in self.fail_to:
            raise TransientUpstreamError(f"no route to {destination.address}")
        km = haversine_km(*origin.as_tuple(), *destination.as_tuple())
        return Directions(distance_meters=km * 1000.0, duration_seconds=km / self.speed_kmh * 3600.0)


@pytest.fixture
def directions():
    return FakeDirections()
