from datetime import datetime, timezone

import pytest

from parcelboard.data import SEED_PARCELS
from parcelboard.models import Parcel
from parcelboard.store import InMemoryParcelStore

# 2024-03-13 15:00 UTC, the day PCL-2024-1006 was delivered.
NOW = datetime(2024, 3, 13, 15, 0, 0, tzinfo=timezone.utc)
MIDNIGHT = int(datetime(2024, 3, 13, tzinfo=timezone.utc).timestamp())


def make_parcel(parcel_id, status, created_at=0, updated_at=0, assigned_to=None, name=None, courier="FedEx"):
    return Parcel(
        parcel_id=parcel_id,
        status=status,
        courier_company=courier,
        created_at=created_at,
        updated_at=updated_at,
        assigned_to=assigned_to,
        assigned_to_name=name,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def seed_parcels():
    return list(SEED_PARCELS.values())


@pytest.fixture
def memory_store(seed_parcels):
    return InMemoryParcelStore(seed_parcels)
