from datetime import date, datetime

from lifesync.utils import detect_crisis_language, excerpt, last_n_days, now_iso, now_utc, parse_iso_date


def test_detect_crisis_language() -> None:
    flagged, phrase = detect_crisis_language("Lately I feel like I want to die.")

    assert flagged is True
    assert phrase == "want to die"


def test_detect_crisis_language_is_case_insensitive() -> None:
    assert detect_crisis_language("There is NO HOPE left")[0] is True


def test_cant_go_on_about_work_is_not_a_crisis() -> None:
    assert detect_crisis_language("I can't go on with these work tasks today") == (False, None)
    assert detect_crisis_language("I can't go on like this")[0] is True


def test_ordinary_text_is_not_flagged() -> None:
    assert detect_crisis_language("Had a lovely walk in the park") == (False, None)
    assert detect_crisis_language("   ") == (False, None)
    assert detect_crisis_language(None) == (False, None)


def test_parse_iso_date() -> None:
    assert parse_iso_date("2024-06-03") == date(2024, 6, 3)
    assert parse_iso_date("2024-06-03T10:15:00Z") == date(2024, 6, 3)
    assert parse_iso_date(datetime(2024, 6, 3, 9)) == date(2024, 6, 3)
    assert parse_iso_date("June 3rd") is None
    assert parse_iso_date("") is None


def test_last_n_days_newest_first() -> None:
    assert last_n_days(3, date(2024, 3, 1)) == ["2024-03-01", "2024-02-29", "2024-02-28"]


def test_excerpt() -> None:
    assert excerpt("abcdef", 3) == "abc"
    assert excerpt(None, 10) == ""


def test_now_iso_is_utc_with_z_suffix() -> None:
    before = now_utc().replace(microsecond=0)
    stamp = now_iso()

    assert stamp.endswith("Z")
    assert parse_iso_date(stamp) >= before.date()
    assert datetime.strptime(stamp, "%Y-%m-%dT%H:%M:%S.%fZ") >= before.replace(tzinfo=None)


def test_health_check(client) -> None:
    body = client.get("/health").json()

    assert body["status"] == "healthy"
    assert body["timestamp"].endswith("Z")
