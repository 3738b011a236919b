import pytest

from eshop_api.config import settings
from eshop_api.exceptions import ValidationError
from eshop_api.utils.helpers import SettingsCache, image_url, response, split_ids, validate
from eshop_api.utils.php import (
    load_status, num_str, number_format, parse_offer_details, php_serialize, php_unserialize, round2,
    status_date, stringify,
)


def test_round2_rounds_half_away_from_zero():
    assert round2(2.675) == 2.68
    assert round2("10") == 10.0
    assert round2(None) == 0.0


def test_number_format_keeps_two_decimals():
    assert number_format(1234.5) == "1234.50"
    assert number_format(0) == "0.00"


def test_num_str_drops_integral_fraction():
    assert num_str(5.0) == "5"
    assert num_str(5.25) == "5.25"
    assert num_str(True) == "1"


def test_stringify_nested_values():
    assert stringify({"a": 1, "b": None, "c": [2.5, "x"]}) == {"a": "1", "b": "", "c": ["2.5", "x"]}


def test_status_date_format():
    from datetime import datetime
    assert status_date(datetime(2024, 3, 5, 14, 7, 9)) == "05-03-2024 02:07:09pm"


def test_load_status_tolerates_bad_history():
    assert load_status('[["received", "01-01-2024 10:00:00am"]]') == [["received", "01-01-2024 10:00:00am"]]
    assert load_status("not json") == []
    assert load_status(None) == []


def test_php_serialize_offer_details():
    serialized = php_serialize({"id": 3, "type": "cashback", "amount": 50.0})
    assert serialized == 'a:3:{s:2:"id";i:3;s:4:"type";s:8:"cashback";s:6:"amount";d:50;}'
    assert php_unserialize(serialized) == {"id": 3, "type": "cashback", "amount": 50.0}


def test_parse_offer_details_accepts_json_and_broken_serialized_data():
    assert parse_offer_details('{"type": "instant_discount"}') == {"type": "instant_discount"}
    assert parse_offer_details('a:3:{s:4:"type";s:8:"cashback";') == {"type": "cashback"}
    assert parse_offer_details("") == {}


def test_image_url_variants():
    base = settings.image_base_url
    assert image_url("") == settings.no_image_url
    assert image_url("media/a.png") == f"{base}uploads/media/a.png"
    assert image_url("uploads/media/2024/a.png", "sm") == f"{base}{settings.media_path}thumb-sm/a.png"
    assert image_url("uploads/media/2024/a.png", "md") == f"{base}{settings.media_path}thumb-md/a.png"
    assert image_url("https://dev.uzvi.in/uploads/x.png") == f"{base}uploads/x.png"
    assert image_url("https://elsewhere.example/uploads/x.png") == f"{base}uploads/x.png"


def test_validate_collects_messages():
    with pytest.raises(ValidationError) as exc_info:
        validate({"user_id": "abc"}, {"user_id": "required|numeric", "qty": "required"})
    assert exc_info.value.message == "The user_id field must be numeric. The qty field is required."
    validate({"user_id": "12", "qty": 0}, {"user_id": "required|numeric", "qty": "required"})


def test_split_ids_and_response_envelope():
    assert split_ids("1, 2,,3") == ["1", "2", "3"]
    assert split_ids([4, " 5 "]) == ["4", "5"]
    assert response(True, "nope") == {"error": True, "message": "nope", "data": []}
    assert response(False, "ok", {"a": 1}, total="1")["total"] == "1"


def test_settings_cache_counts_hits_and_misses():
    cache = SettingsCache(ttl=60)
    assert cache.get("logo") is None
    cache.set("logo", "a.png")
    assert cache.get("logo") == "a.png"
    assert cache.stats() == {"keys": 1, "hits": 1, "misses": 1, "ttl": 60}
    assert cache.clear() == 1


def test_settings_cache_entries_expire_after_ttl():
    clock = [1000.0]
    cache = SettingsCache(ttl=300, timer=lambda: clock[0])
    cache.set("currency", "INR")

    clock[0] += 299
    assert cache.get("currency") == "INR"

    clock[0] += 2
    assert cache.get("currency") is None
    assert cache.stats()["keys"] == 0
