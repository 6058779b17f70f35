from local_events.models import SourceType
from local_events.normalize import (
    categorize_event,
    clean_price,
    clean_text,
    extract_tags,
    is_generic_content,
    normalize_url,
    resolve_url,
)


def test_clean_text():
    assert clean_text("  Jazz \n\t Night  ") == "Jazz Night"
    assert clean_text("   ") is None
    assert clean_text(None) is None


def test_categorize_first_match_wins():
    # "concert" (music) beats "festival" because music is checked first
    assert categorize_event("Summer Festival Concert") == "music"
    assert categorize_event("Farmers Market on the Square") == "market"
    assert categorize_event("Pottery Workshop") == "education"


def test_categorize_uses_description():
    assert categorize_event("Friday Special", "Four-course tasting menu") == "food"


def test_categorize_falls_back_to_venue_then_source_type():
    assert categorize_event("Open House", default_category="art") == "art"
    assert categorize_event("Open House", source_type=SourceType.BREWERY) == "food"
    assert categorize_event("Open House", source_type="community") == "community"
    assert categorize_event("Open House", source_type="not-a-type") == "other"
    assert categorize_event("Open House") == "other"


def test_extract_tags_all_matches():
    tags = extract_tags("Free Outdoor Concert", "Live music on the patio, all ages welcome")
    assert tags == ["live-music", "free", "family-friendly", "outdoor"]


def test_extract_tags_21_plus():
    assert "21+" in extract_tags("Whiskey Tasting (21+)")


def test_clean_price():
    assert clean_price("Tickets: $15 - $20 + fees") == "$15 - $20"
    assert clean_price("FREE admission") == "Free"
    assert clean_price("$0") == "Free"
    assert clean_price("Call for pricing") is None
    assert clean_price(None) is None


def test_resolve_url():
    base = "https://venue.example/events/"
    assert resolve_url("/img/a.jpg", base) == "https://venue.example/img/a.jpg"
    assert resolve_url("show/42", base) == "https://venue.example/events/show/42"
    assert resolve_url("https://cdn.example/a.jpg", base) == "https://cdn.example/a.jpg"
    assert resolve_url("", base) is None


def test_normalize_url_strips_tracking_and_upgrades_scheme():
    url = "http://venue.example/events?utm_source=fb&page=2&fbclid=abc"
    assert normalize_url(url) == "https://venue.example/events?page=2"


def test_normalize_url_leaves_relative_alone():
    assert normalize_url("/events") == "/events"
    assert normalize_url(None) is None


def test_generic_content():
    assert is_generic_content("Menu")
    assert is_generic_content(" contact ")
    assert not is_generic_content("Menu Tasting Night")
