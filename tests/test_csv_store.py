import asyncio

import pytest

from csv_store import (
    DonationStore, DonationStoreError, HEADER, format_line, parse_line, sanitize_field,
    stored_fields
)
from schemas import DonationCreate


def donation(**overrides):
    fields = {
        "id": 1,
        "name": "Asha",
        "amount": 500,
        "date": "2024-11-01",
        "location": "India",
        "paymentId": "pay_001",
        "email": "asha@example.com",
    }
    fields.update(overrides)
    return DonationCreate(**fields)


def test_initialize_creates_file_with_header(csv_path):
    store = DonationStore(csv_path)

    assert asyncio.run(store.initialize()) is True
    assert csv_path.read_text(encoding="utf-8") == "id,name,amount,date,location,paymentId,email\n"


def test_initialize_creates_missing_directories(tmp_path):
    path = tmp_path / "data" / "nested" / "donations.csv"
    asyncio.run(DonationStore(path).initialize())

    assert path.read_text(encoding="utf-8") == HEADER


def test_initialize_leaves_existing_file_untouched(csv_path):
    csv_path.write_text("whatever,header\n7,Ravi,20,2024-01-01,Pune\n", encoding="utf-8")

    assert asyncio.run(DonationStore(csv_path).initialize()) is False
    assert csv_path.read_text(encoding="utf-8") == "whatever,header\n7,Ravi,20,2024-01-01,Pune\n"


def test_fresh_store_lists_nothing(store):
    assert asyncio.run(store.list_records()) == []


def test_round_trip(store):
    asyncio.run(store.append_record(donation(amount=1234.56)))

    [record] = asyncio.run(store.list_records())
    assert record.id == 1
    assert record.name == "Asha"
    assert record.amount == pytest.approx(1234.56)
    assert record.date == "2024-11-01"
    assert record.location == "India"
    assert record.payment_id == "pay_001"
    assert record.email == "asha@example.com"


def test_comma_in_name_becomes_semicolon(store):
    asyncio.run(store.append_record(donation(name="Doe, Jane", location="Delhi, IN")))

    [record] = asyncio.run(store.list_records())
    assert record.name == "Doe; Jane"
    assert record.location == "Delhi; IN"
    assert record.date == "2024-11-01"


def test_missing_id_falls_back_to_line_position(store):
    asyncio.run(store.append_record(donation(id=10)))
    asyncio.run(store.append_record(donation(id=None)))
    asyncio.run(store.append_record(donation(id=0)))

    records = asyncio.run(store.list_records())
    assert [r.id for r in records] == [10, 2, 3]


def test_append_order_is_preserved_without_dedup(store):
    for name in ["A", "B", "A"]:
        asyncio.run(store.append_record(donation(name=name, id=1)))

    records = asyncio.run(store.list_records())
    assert [r.name for r in records] == ["A", "B", "A"]
    assert [r.id for r in records] == [1, 1, 1]


def test_short_lines_are_skipped(store, write_lines):
    write_lines("1,Asha,500,2024-11-01,India,pay_1,a@x.com", "2,Ravi,20")

    records = asyncio.run(store.list_records())
    assert len(records) == 1
    assert records[0].name == "Asha"


def test_blank_lines_are_ignored_but_counted_for_fallback_ids(store, write_lines):
    write_lines(",Asha,500,2024-11-01,India", "", ",Ravi,20,2024-11-02,India")

    records = asyncio.run(store.list_records())
    assert [(r.name, r.id) for r in records] == [("Asha", 1), ("Ravi", 3)]


def test_optional_columns_default_to_empty(store, write_lines):
    write_lines("4,Meera,75.5,2024-11-03,Goa")

    [record] = asyncio.run(store.list_records())
    assert record.payment_id == ""
    assert record.email == ""
    assert record.amount == pytest.approx(75.5)


def test_unparsable_amount_reads_as_zero(store, write_lines):
    write_lines("5,Kiran,lots,2024-11-04,Goa", "6,Dev,250INR,2024-11-04,Goa")

    records = asyncio.run(store.list_records())
    assert [r.amount for r in records] == [0, 250]


def test_non_numeric_amount_is_written_as_is(store, csv_path):
    asyncio.run(store.append_record(donation(amount="five hundred")))

    assert csv_path.read_text(encoding="utf-8").splitlines()[1].split(",")[2] == "five hundred"


def test_windows_line_endings(store, csv_path):
    csv_path.write_text(HEADER.replace("\n", "\r\n") + "1,Asha,500,2024-11-01,India\r\n", encoding="utf-8")

    [record] = asyncio.run(store.list_records())
    assert record.location == "India"


def test_list_is_idempotent(store):
    asyncio.run(store.append_record(donation()))

    assert asyncio.run(store.list_records()) == asyncio.run(store.list_records())


def test_append_writes_exactly_one_line(store, csv_path):
    asyncio.run(store.append_record(donation(location=None, paymentId=None, email=None)))

    assert csv_path.read_text(encoding="utf-8") == HEADER + "1,Asha,500,2024-11-01,,,\n"


def test_list_missing_file_raises(tmp_path):
    store = DonationStore(tmp_path / "absent.csv")

    with pytest.raises(DonationStoreError):
        asyncio.run(store.list_records())


def test_append_to_unwritable_path_raises(tmp_path):
    store = DonationStore(tmp_path / "missing-dir" / "donations.csv")

    with pytest.raises(DonationStoreError):
        asyncio.run(store.append_record(donation()))


def test_concurrent_appends_are_not_serialised(store):
    # No lock is taken; each append is one write to a file opened for append,
    # so small lines land whole but their relative order is not guaranteed.
    async def append_many():
        await asyncio.gather(*(store.append_record(donation(id=i, name=f"d{i}")) for i in range(1, 21)))

    asyncio.run(append_many())

    records = asyncio.run(store.list_records())
    assert sorted(r.id for r in records) == list(range(1, 21))


def test_sanitize_field():
    assert sanitize_field("a,b,,c") == "a;b;;c"
    assert sanitize_field(None) == ""
    assert sanitize_field("") == ""


def test_format_line_keeps_id_and_amount_raw():
    line = format_line(donation(id="3", amount="1,000", name="x,y"))

    assert line == "3,x;y,1,000,2024-11-01,India,pay_001,asha@example.com\n"


def test_parse_line_leading_integer_id():
    record = parse_line("12abc,Asha,10,2024-11-01,India", 4)

    assert record.id == 12


def test_parse_line_too_few_columns():
    assert parse_line("1,Asha,10,2024-11-01", 1) is None


def test_stored_fields_match_written_line():
    fields = stored_fields(donation(name="Doe, Jane", date=20241101))

    assert fields["name"] == "Doe; Jane"
    assert fields["date"] == "20241101"
    assert format_line(donation(name="Doe, Jane", date=20241101)) == ",".join(fields.values()) + "\n"
