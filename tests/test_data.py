import json
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
import requests

from conftest import make_parcel

from parcelboard.config import Settings
from parcelboard.data import (
    EXPORT_HEADERS,
    SEED_PARCELS,
    export_to_csv,
    fetch_parcels_by_date_range,
    round_half_up,
    seed_database,
)
from parcelboard.filters import calculate_date_range
from parcelboard.models import DateRange, Parcel
from parcelboard.store import (
    HttpParcelStore,
    InMemoryParcelStore,
    JsonFileParcelStore,
    ParcelStoreError,
    build_store,
)


def _range(start_s, end_s):
    return DateRange(start=datetime.fromtimestamp(start_s).astimezone(), end=datetime.fromtimestamp(end_s).astimezone())


def test_round_half_up():
    assert round_half_up(0.25, 1) == 0.3
    assert round_half_up(16.65, 1) == 16.7
    assert round_half_up(None) is None


def test_fetch_bounds_are_inclusive():
    store = InMemoryParcelStore(
        [
            make_parcel("P1", "received", created_at=100),
            make_parcel("P2", "received", created_at=200),
            make_parcel("P3", "received", created_at=99),
            make_parcel("P4", "received", created_at=201),
        ]
    )
    got = fetch_parcels_by_date_range(store, _range(100, 200))
    assert sorted(p.parcel_id for p in got) == ["P1", "P2"]


def test_seed_is_idempotent():
    store = InMemoryParcelStore()
    assert seed_database(store) == 6
    seed_database(store)
    assert len(store) == 6


def test_fetch_after_seed_month_of_march(now):
    store = InMemoryParcelStore()
    seed_database(store)
    got = fetch_parcels_by_date_range(store, calculate_date_range("month", now=now))
    assert {p.parcel_id for p in got} == set(SEED_PARCELS)


def test_json_store_round_trip(tmp_path):
    store = JsonFileParcelStore(tmp_path / "parcels.json")
    assert store.query_created_between(0, 2**40) == []
    seed_database(store)
    raw = json.loads((tmp_path / "parcels.json").read_text())
    assert set(raw) == set(SEED_PARCELS)
    assert raw["PCL-2024-1001"]["courierCompany"] == "BlueDart"

    got = store.query_created_between(0, 2**40)
    assert {p.parcel_id for p in got} == set(SEED_PARCELS)
    assert SEED_PARCELS["PCL-2024-1001"] in got


def test_json_store_sees_later_writes(tmp_path):
    store = JsonFileParcelStore(tmp_path / "parcels.json")
    store.write_batch([make_parcel("A", "received", created_at=10)])
    assert len(store.query_created_between(0, 100)) == 1
    store.write_batch([make_parcel("B", "received", created_at=20)])
    assert {p.parcel_id for p in store.query_created_between(0, 100)} == {"A", "B"}


def test_json_store_drops_malformed_documents(tmp_path, caplog):
    path = tmp_path / "parcels.json"
    path.write_text(
        json.dumps(
            {
                "ok": {"parcelId": "ok", "status": "received", "courierCompany": "DTDC", "createdAt": 5, "updatedAt": 5},
                "no-id": {"status": "received", "createdAt": 5, "updatedAt": 5},
                "bad-ts": {"parcelId": "bad-ts", "status": "received", "createdAt": "soon", "updatedAt": 5},
            }
        )
    )
    got = JsonFileParcelStore(path).query_created_between(0, 10)
    assert [p.parcel_id for p in got] == ["ok"]
    assert "Dropped 2 malformed" in caplog.text


def test_json_store_unreadable_file_raises(tmp_path):
    path = tmp_path / "parcels.json"
    path.write_text("{not json")
    with pytest.raises(ParcelStoreError):
        JsonFileParcelStore(path).query_created_between(0, 10)


def test_from_document_defaults_optional_fields():
    p = Parcel.from_document({"parcelId": "X", "status": "Delivered", "createdAt": "10", "updatedAt": 20.0})
    assert p.status == "delivered"
    assert p.assigned_to is None
    assert p.assigned_to_name is None
    assert p.type == "incoming"
    assert (p.created_at, p.updated_at) == (10, 20)


def test_http_store_query():
    response = MagicMock()
    response.json.return_value = {"documents": [SEED_PARCELS["PCL-2024-1002"].to_document()]}
    with patch("parcelboard.store.requests.get", return_value=response) as mock_get:
        got = HttpParcelStore("http://docs.local/", timeout=3).query_created_between(0, 2**40)
    assert got == [SEED_PARCELS["PCL-2024-1002"]]
    mock_get.assert_called_once_with(
        "http://docs.local/parcels",
        params={"createdAtGte": 0, "createdAtLte": 2**40},
        timeout=3,
    )


def test_http_store_accepts_bare_list_and_rechecks_window():
    response = MagicMock()
    response.json.return_value = [
        make_parcel("in", "received", created_at=50).to_document(),
        make_parcel("out", "received", created_at=500).to_document(),
    ]
    with patch("parcelboard.store.requests.get", return_value=response):
        got = HttpParcelStore("http://docs.local").query_created_between(0, 100)
    assert [p.parcel_id for p in got] == ["in"]


@pytest.mark.parametrize("body", [5, "oops", {"documents": 7}])
def test_http_store_rejects_non_list_payload(body):
    response = MagicMock()
    response.json.return_value = body
    with patch("parcelboard.store.requests.get", return_value=response):
        with pytest.raises(ParcelStoreError):
            HttpParcelStore("http://docs.local").query_created_between(0, 100)


def test_http_store_errors_are_wrapped():
    with patch("parcelboard.store.requests.get", side_effect=requests.ConnectionError("down")):
        with pytest.raises(ParcelStoreError):
            fetch_parcels_by_date_range(HttpParcelStore("http://docs.local"), _range(0, 10))


def test_http_store_batch_write():
    with patch("parcelboard.store.requests.post") as mock_post:
        written = HttpParcelStore("http://docs.local", timeout=2).write_batch(SEED_PARCELS.values())
    assert written == 6
    args, kwargs = mock_post.call_args
    assert args[0] == "http://docs.local/parcels:batchWrite"
    assert len(kwargs["json"]["documents"]) == 6
    assert kwargs["timeout"] == 2


def test_build_store(tmp_path):
    assert isinstance(build_store(Settings(store="memory")), InMemoryParcelStore)
    assert isinstance(build_store(Settings(store="json", data_path=tmp_path / "p.json")), JsonFileParcelStore)
    assert isinstance(build_store(Settings(store="http", store_url="http://x")), HttpParcelStore)
    with pytest.raises(ParcelStoreError):
        build_store(Settings(store="http"))


def test_export_csv_layout():
    parcels = [SEED_PARCELS["PCL-2024-1001"], SEED_PARCELS["PCL-2024-1002"], make_parcel("P9", "received", 0, 0, assigned_to="s9")]
    lines = export_to_csv(parcels).decode("utf-8").splitlines()
    assert lines[0] == ",".join(EXPORT_HEADERS)
    assert len(lines) == 4

    created = datetime.fromtimestamp(1709539200).strftime("%Y-%m-%d %H:%M:%S")
    delivered = datetime.fromtimestamp(1709625600).strftime("%Y-%m-%d %H:%M:%S")
    assert lines[1] == f"PCL-2024-1001,BlueDart,Alice Johnson,delivered,incoming,{created},{delivered}"
    assert lines[2].endswith(",N/A")
    assert lines[3].startswith("P9,FedEx,s9,received,")


def test_export_csv_empty_has_header_only():
    assert export_to_csv([]).decode("utf-8").strip() == ",".join(EXPORT_HEADERS)
