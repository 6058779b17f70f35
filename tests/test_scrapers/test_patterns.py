from datetime import datetime

from local_events.dates import CITY_TZ
from local_events.scrapers.base import ExtractionContext
from local_events.scrapers.extractor import parse_html
from local_events.scrapers.patterns import HeuristicStrategy

NOW = datetime(2025, 6, 1, 10, 0, tzinfo=CITY_TZ)
CONTEXT = ExtractionContext(
    page_url="https://cityofmadison.com/events", extracted_at=NOW, venue_name="City Hall"
)


def test_microdata_event():
    html = """
    <div itemscope itemtype="https://schema.org/Event">
      <h2 itemprop="name">Concerts on the Square</h2>
      <meta itemprop="startDate" content="2025-06-25T19:00:00-05:00">
      <div itemprop="location" itemscope itemtype="https://schema.org/Place">
        <span itemprop="name">Capitol Square</span>
      </div>
      <p itemprop="description">Free outdoor concert</p>
      <a itemprop="url" href="/events/cots">Details</a>
    </div>
    """
    events = HeuristicStrategy().extract(parse_html(html), CONTEXT)
    assert len(events) == 1
    e = events[0]
    assert e.title == "Concerts on the Square"
    assert e.start_datetime == datetime(2025, 6, 25, 19, 0, tzinfo=CITY_TZ)
    assert e.location == "Capitol Square"
    assert e.source_url == "https://cityofmadison.com/events/cots"
    assert "free" in e.tags


def test_time_block_with_heading():
    html = """
    <ul>
      <li>
        <h4>Lakeshore Path Cleanup</h4>
        <p><time datetime="2025-06-14T09:00:00-05:00">June 14</time></p>
        <span class="location">Picnic Point</span>
      </li>
    </ul>
    """
    events = HeuristicStrategy().extract(parse_html(html), CONTEXT)
    assert len(events) == 1
    assert events[0].title == "Lakeshore Path Cleanup"
    assert events[0].location == "Picnic Point"
    assert events[0].start_datetime == datetime(2025, 6, 14, 9, 0, tzinfo=CITY_TZ)


def test_time_without_heading_ignored():
    html = '<div><div><div><div><time datetime="2025-06-14">x</time></div></div></div></div>'
    assert HeuristicStrategy().extract(parse_html(html), CONTEXT) == []


def test_plain_page_is_empty():
    assert HeuristicStrategy().extract(parse_html("<p>Nothing to see</p>"), CONTEXT) == []
