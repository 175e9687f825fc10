# tests/test_posting_sweep.py
import pytest
import requests

from conftest import API_URL, listing, search_payload
from modules.posting_sweep import run as run_module
from modules.posting_sweep.lib import db, engine
from modules.posting_sweep.lib.config import SearchQuery
from modules.posting_sweep.lib.errors import PageUnavailable, SchemaViolation, TransportFailure
from modules.posting_sweep.lib.merge import merge
from modules.posting_sweep.lib.models import ListingRecord

DETAIL_WITH_SKILLS = "<html>CON_CORP\nSkills: Java, Go\n</html>"


class MemorySink:
    def __init__(self, existing=()):
        self.existing = set(existing)
        self.appended = []

    def existing_keys(self):
        return set(self.existing)

    def append_records(self, records):
        self.appended.extend(records)


# ----------------------------------------------------------------------
# 1. Single page, no filters -> one record with extracted skills
# ----------------------------------------------------------------------
def test_single_page_single_listing(requests_mock, make_settings):
    requests_mock.get(f"{API_URL}?page=1", json=search_payload([listing(1, jobTitle="Engineer")]))
    requests_mock.get("http://x/1", text=DETAIL_WITH_SKILLS)
    sink = MemorySink()

    summary = engine.run_once(make_settings(traversal_depth=1), sink=sink)

    assert summary.aggregated == [
        ListingRecord(
            detail_url="http://x/1",
            title="Engineer",
            company="Acme",
            location="NYC",
            date="2014-01-01",
            skills="Java,Go",
        )
    ]
    assert sink.appended == summary.aggregated
    assert summary.written is True

    qs = requests_mock.request_history[0].qs
    assert qs == {"text": ["java"], "age": ["1"], "page": ["1"], "sort": ["1"]}


# ----------------------------------------------------------------------
# 2. Already recorded -> empty delta, nothing written
# ----------------------------------------------------------------------
def test_existing_key_yields_no_new_records(requests_mock, make_settings):
    requests_mock.get(f"{API_URL}?page=1", json=search_payload([listing(1)]))
    requests_mock.get("http://x/1", text=DETAIL_WITH_SKILLS)
    sink = MemorySink(existing={"http://x/1"})

    summary = engine.run_once(make_settings(), sink=sink)

    assert summary.new_records == []
    assert sink.appended == []
    assert summary.written is False


# ----------------------------------------------------------------------
# 3. Content filter excludes pages lacking the text
# ----------------------------------------------------------------------
def test_content_filter_excludes_listing(requests_mock, make_settings):
    requests_mock.get(f"{API_URL}?page=1", json=search_payload([listing(1), listing(2)]))
    requests_mock.get("http://x/1", text="<html>W2 only</html>")
    requests_mock.get("http://x/2", text=DETAIL_WITH_SKILLS)

    summary = engine.run_once(make_settings(content_filters=["CON_CORP"]), sink=MemorySink())

    assert [r.detail_url for r in summary.aggregated] == ["http://x/2"]


# ----------------------------------------------------------------------
# 4. Redirected detail page: its final body is what gets filtered/extracted
# ----------------------------------------------------------------------
def test_redirected_detail_page(requests_mock, make_settings):
    requests_mock.get(f"{API_URL}?page=1", json=search_payload([listing(1)]))
    requests_mock.get("http://x/1", status_code=302, headers={"Location": "http://x/1-final"})
    requests_mock.get("http://x/1-final", text="CON_CORP\nSkills: Scala\n")

    summary = engine.run_once(make_settings(content_filters=["CON_CORP"]), sink=MemorySink())

    assert [r.skills for r in summary.aggregated] == ["Scala"]
    # the record stays keyed by the listing's own URL
    assert summary.aggregated[0].detail_url == "http://x/1"
    detail_calls = [r.url for r in requests_mock.request_history if not r.url.startswith(API_URL)]
    assert detail_calls == ["http://x/1", "http://x/1-final"]


# ----------------------------------------------------------------------
# 5. No skills block -> "N/A"
# ----------------------------------------------------------------------
def test_missing_skills_block_is_na(requests_mock, make_settings):
    requests_mock.get(f"{API_URL}?page=1", json=search_payload([listing(1)]))
    requests_mock.get("http://x/1", text="<html>plain page</html>")

    summary = engine.run_once(make_settings(), sink=MemorySink())

    assert summary.aggregated[0].skills == "N/A"


# ----------------------------------------------------------------------
# Traversal
# ----------------------------------------------------------------------
def test_fixed_depth_ignores_exhausted_counts(fake_client, make_settings):
    for page in (1, 2, 3):
        fake_client.routes[f"{API_URL}#page={page}"] = search_payload([listing(1)], count=1, last_document=1)
    fake_client.routes["http://x/1"] = DETAIL_WITH_SKILLS

    summary = engine.run_once(make_settings(traversal_depth=3), sink=MemorySink(), client=fake_client)

    assert summary.pages == 3
    assert len(summary.aggregated) == 1  # same URL on every page, one record


def test_stop_when_exhausted_ends_early(fake_client, make_settings):
    fake_client.routes[f"{API_URL}#page=1"] = search_payload([listing(1)], count=1, last_document=1)
    fake_client.routes["http://x/1"] = DETAIL_WITH_SKILLS

    summary = engine.run_once(
        make_settings(traversal_depth=5, stop_when_exhausted=True), sink=MemorySink(), client=fake_client
    )

    assert summary.pages == 1


def test_zero_depth_fetches_nothing(fake_client, make_settings):
    summary = engine.run_once(make_settings(traversal_depth=0), sink=MemorySink(), client=fake_client)
    assert fake_client.calls == []
    assert summary.new_records == []


def test_pages_run_strictly_in_sequence(fake_client, make_settings):
    fake_client.delay = 0.01
    fake_client.routes[f"{API_URL}#page=1"] = search_payload([listing(n) for n in range(1, 6)])
    fake_client.routes[f"{API_URL}#page=2"] = search_payload([listing(n) for n in range(6, 11)])
    for n in range(1, 11):
        fake_client.routes[f"http://x/{n}"] = DETAIL_WITH_SKILLS

    engine.run_once(make_settings(traversal_depth=2), sink=MemorySink(), client=fake_client)

    calls = fake_client.calls
    page2 = calls.index(f"{API_URL}#page=2")
    assert {f"http://x/{n}" for n in range(1, 6)} <= set(calls[:page2])
    assert {f"http://x/{n}" for n in range(6, 11)} <= set(calls[page2 + 1 :])


# ----------------------------------------------------------------------
# Fatal errors leave the sink untouched
# ----------------------------------------------------------------------
def test_schema_violation_on_later_page_aborts_without_writes(fake_client, make_settings):
    fake_client.routes[f"{API_URL}#page=1"] = search_payload([listing(1)])
    fake_client.routes[f"{API_URL}#page=2"] = {"unexpected": True}
    fake_client.routes["http://x/1"] = DETAIL_WITH_SKILLS
    sink = MemorySink()

    with pytest.raises(SchemaViolation) as ei:
        engine.run_once(make_settings(traversal_depth=2), sink=sink, client=fake_client)

    assert ei.value.page == 2
    assert sink.appended == []


def test_unreachable_search_page_is_fatal(fake_client, make_settings):
    sink = MemorySink()
    with pytest.raises(PageUnavailable) as ei:
        engine.run_once(make_settings(), sink=sink, client=fake_client)
    assert ei.value.page == 1
    assert sink.appended == []


def test_repeated_transport_failures_abort_the_run(fake_client, make_settings):
    fake_client.routes[f"{API_URL}#page=1"] = search_payload([listing(n) for n in range(1, 4)])
    for n in range(1, 4):
        fake_client.routes[f"http://x/{n}"] = TransportFailure(f"http://x/{n}")
    sink = MemorySink()

    with pytest.raises(TransportFailure):
        engine.run_once(make_settings(max_transport_failures=1, pool_size=1), sink=sink, client=fake_client)
    assert sink.appended == []


def test_isolated_transport_failure_keeps_siblings(fake_client, make_settings):
    fake_client.routes[f"{API_URL}#page=1"] = search_payload([listing(1), listing(2)])
    fake_client.routes["http://x/1"] = TransportFailure("http://x/1")
    fake_client.routes["http://x/2"] = DETAIL_WITH_SKILLS

    summary = engine.run_once(make_settings(), sink=MemorySink(), client=fake_client)

    assert [r.detail_url for r in summary.new_records] == ["http://x/2"]
    assert summary.transport_failures == 1


# ----------------------------------------------------------------------
# Dedup merge
# ----------------------------------------------------------------------
def _records(*urls):
    return [ListingRecord(u, "t", "c", "l", "d", "N/A") for u in urls]


def test_merge_excludes_existing_and_keeps_discovery_order():
    out = merge(_records("u3", "u1", "u2"), {"u1"})
    assert [r.detail_url for r in out] == ["u3", "u2"]


def test_merge_is_idempotent():
    store = _records("u1", "u2", "u3")
    existing = {"u2"}
    first = merge(store, existing)
    assert not {r.detail_url for r in first} & existing
    assert merge(store, existing | {r.detail_url for r in first}) == []


# ----------------------------------------------------------------------
# SQLite sink end to end via the module entry point
# ----------------------------------------------------------------------
def test_module_run_writes_then_dedupes(requests_mock, make_settings):
    settings = make_settings()
    requests_mock.get(f"{API_URL}?page=1", json=search_payload([listing(1), listing(2)]))
    requests_mock.get("http://x/1", text=DETAIL_WITH_SKILLS)
    requests_mock.get("http://x/2", text="no skills")
    kwargs = {
        "keyword": "java",
        "base_url": API_URL,
        "sqlite_path": settings.sqlite_path,
        "sheet": "Monday, Jan 06",
    }

    first = run_module(**kwargs)
    second = run_module(**kwargs)

    assert len(first.new_records) == 2
    assert second.new_records == []
    assert db.count_rows(settings.sqlite_path, "Monday, Jan 06") == 2


def test_dry_run_does_not_write(requests_mock, make_settings):
    settings = make_settings(dry_run=True)
    requests_mock.get(f"{API_URL}?page=1", json=search_payload([listing(1)]))
    requests_mock.get("http://x/1", text=DETAIL_WITH_SKILLS)

    summary = engine.run_once(settings)

    assert len(summary.new_records) == 1
    assert summary.written is False
    assert db.count_rows(settings.sqlite_path) == 0


def test_query_page_params():
    q = SearchQuery(keyword="ruby", age_days=7, traversal_depth=2)
    assert q.page_params(2) == {"text": "ruby", "age": 7, "page": 2, "sort": 1}


def test_truncated_detail_body_is_isolated(requests_mock, make_settings):
    requests_mock.get(f"{API_URL}?page=1", json=search_payload([listing(1), listing(2)]))
    requests_mock.get("http://x/1", exc=requests.exceptions.ChunkedEncodingError)
    requests_mock.get("http://x/2", text=DETAIL_WITH_SKILLS)

    summary = engine.run_once(make_settings(), sink=MemorySink())

    assert [r.detail_url for r in summary.aggregated] == ["http://x/2"]
    assert summary.transport_failures == 1


def test_redirect_without_location_drops_listing(requests_mock, make_settings):
    requests_mock.get(f"{API_URL}?page=1", json=search_payload([listing(1)]))
    requests_mock.get("http://x/1", status_code=302)

    summary = engine.run_once(make_settings(), sink=MemorySink())

    assert summary.aggregated == []
