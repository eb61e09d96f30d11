import datetime as dt
from pathlib import Path

from navhistory.config import HistoryConfig
from navhistory.store import HistoryEntry, HistoryStore, TransitionKind


def test_record_creates_entry(store, clock) -> None:
    entry = store.record("https://example.com", "Example Domain", TransitionKind.LINK)

    assert entry.address == "https://example.com"
    assert entry.title == "Example Domain"
    assert entry.visit_count == 1
    assert entry.typed_count == 0
    assert entry.last_visit == clock.now
    assert entry.favicon is None
    assert len(store) == 1


def test_record_dedups_by_address(store, clock) -> None:
    first = store.record("https://example.com", "Example", TransitionKind.TYPED)
    clock.advance(minutes=5)
    second = store.record("https://example.com", "Example Domain", TransitionKind.LINK)

    assert len(store) == 1
    assert second.id == first.id
    assert second.visit_count == 2
    assert second.typed_count == 1
    assert second.title == "Example Domain"
    assert second.last_visit == clock.now


def test_record_counts_typed_visits(store) -> None:
    store.record("https://example.com", "Example", TransitionKind.TYPED)
    store.record("https://example.com", "Example", "typed")
    entry = store.record("https://example.com", "Example", TransitionKind.RELOAD)

    assert entry.visit_count == 3
    assert entry.typed_count == 2


def test_record_empty_title_defaults_to_address(store) -> None:
    entry = store.record("https://x.com", "", TransitionKind.LINK)
    assert entry.title == "https://x.com"


def test_record_keeps_title_when_new_title_is_empty(store) -> None:
    store.record("https://example.com", "Example Domain")
    entry = store.record("https://example.com", "")
    assert entry.title == "Example Domain"


def test_record_never_moves_last_visit_backwards(store, clock) -> None:
    store.record("https://example.com")
    first_visit = clock.now
    clock.advance(hours=-1)
    entry = store.record("https://example.com")
    assert entry.last_visit == first_visit


def test_record_rejects_blank_address(store) -> None:
    try:
        store.record("   ", "Nothing")
    except ValueError as exc:
        assert "address" in str(exc)
    else:
        raise AssertionError("Expected ValueError")


def test_search_empty_query_returns_most_recent(store, clock) -> None:
    for idx in range(1, 21):
        store.record(f"https://example{idx}.com", f"Example Site {idx}", TransitionKind.TYPED)
        clock.advance(seconds=1)

    recent = store.search("", limit=15)

    assert len(recent) == 15
    assert [entry.title for entry in recent] == [f"Example Site {n}" for n in range(20, 5, -1)]


def test_search_empty_history(store) -> None:
    assert store.search("", limit=15) == []
    assert store.search("anything") == []


def test_search_filters_and_ranks(store, clock) -> None:
    store.record("https://github.com/org/repo", "Repo Title", TransitionKind.TYPED)
    clock.advance(seconds=1)
    store.record("https://docs.python.org/3/", "Python Docs")
    clock.advance(seconds=1)
    store.record("https://example.com/github-mirror", "Mirror")

    results = store.search("github")

    assert [entry.address for entry in results] == [
        "https://github.com/org/repo",
        "https://example.com/github-mirror",
    ]


def test_search_prefers_frecency_between_equal_matches(store, clock) -> None:
    store.record("https://news.example.com", "News")
    for _ in range(4):
        store.record("https://mail.example.com", "Mail")
    clock.advance(seconds=1)
    store.record("https://shop.example.com", "Shop")

    results = store.search("example")

    assert results[0].address == "https://mail.example.com"
    # Equal scores fall back to the most recent visit.
    assert [entry.address for entry in results[1:]] == [
        "https://shop.example.com",
        "https://news.example.com",
    ]


def test_search_respects_limit(store) -> None:
    for idx in range(5):
        store.record(f"https://site{idx}.example.com", f"Site {idx}")
    assert len(store.search("site", limit=3)) == 3
    assert store.search("site", limit=0) == []


def test_search_returns_copies(store) -> None:
    store.record("https://example.com", "Example")
    result = store.search("example")[0]
    result.visit_count = 99
    assert store.get_by_address("https://example.com").visit_count == 1


def test_autocomplete_prefix_and_host(store) -> None:
    store.record("https://example.com/path", "Example Path")

    assert store.autocomplete("https://exa") == "https://example.com/path"
    assert store.autocomplete("HTTPS://EXA") == "https://example.com/path"


def test_autocomplete_uses_host_prefix(store) -> None:
    store.record("https://www.example.com/", "Example")
    assert store.autocomplete("www.ex") == "https://www.example.com/"


def test_autocomplete_rejects_mid_string_matches(store) -> None:
    store.record("https://example.com/path", "Example Path")

    assert store.search("path")
    assert store.autocomplete("path") is None
    assert store.search("example p")
    assert store.autocomplete("example p") is None
    # A bare host prefix still completes to the full address.
    assert store.autocomplete("example") == "https://example.com/path"


def test_autocomplete_empty_query(store) -> None:
    store.record("https://example.com", "Example")
    assert store.autocomplete("") is None
    assert store.autocomplete("nomatch") is None


def test_remove_entry(store, persistence) -> None:
    keep = store.record("https://keep.example.com", "Keep")
    drop = store.record("https://drop.example.com", "Drop")

    assert store.remove_entry(drop.id) is True
    assert store.remove_entry(drop.id) is False
    assert store.get(drop.id) is None
    assert store.get(keep.id) is not None

    assert store.flush(timeout=5)
    assert [entry.address for entry in persistence.saved] == ["https://keep.example.com"]


def test_clear_all(store, persistence) -> None:
    store.record("https://a.example.com")
    store.record("https://b.example.com")

    assert store.clear_all() == 2
    assert len(store) == 0
    assert store.flush(timeout=5)
    assert persistence.saved == []


def test_clear_older_than_days(store, clock) -> None:
    store.record("https://old.example.com", "Old")
    clock.advance(days=10)
    store.record("https://new.example.com", "New")

    removed = store.clear_older_than(7)

    assert removed == 1
    assert [entry.address for entry in store.entries()] == ["https://new.example.com"]


def test_clear_older_than_zero_clears_everything_not_in_future(store, clock) -> None:
    store.record("https://a.example.com")
    store.record("https://b.example.com")
    future = HistoryEntry(
        address="https://future.example.com", last_visit=clock.now + dt.timedelta(hours=1)
    )
    store.import_entries([future])

    removed = store.clear_older_than(0)

    assert removed == 2
    assert [entry.address for entry in store.entries()] == ["https://future.example.com"]


def test_update_favicon(store) -> None:
    store.record("https://example.com", "Example")

    assert store.update_favicon("https://example.com", b"\x89PNG") is True
    entry = store.get_by_address("https://example.com")
    assert entry.favicon == b"\x89PNG"
    assert entry.visit_count == 1


def test_update_favicon_unknown_address_is_noop(store, persistence) -> None:
    assert store.update_favicon("https://missing.example.com", b"icon") is False
    assert store.flush(timeout=5)
    assert persistence.saves == 0


def test_update_favicon_respects_size_cap(persistence, clock) -> None:
    capped = HistoryStore(persistence=persistence, clock=clock, favicon_max_bytes=4)
    try:
        capped.record("https://example.com")
        assert capped.update_favicon("https://example.com", b"12345") is False
        assert capped.update_favicon("https://example.com", b"1234") is True
    finally:
        capped.close()


def test_retention_drops_old_entries_on_record(store, clock) -> None:
    store.record("https://stale.example.com", "Stale")
    clock.advance(days=366)
    store.record("https://fresh.example.com", "Fresh")

    assert store.get_by_address("https://stale.example.com") is None
    assert store.get_by_address("https://fresh.example.com") is not None


def test_retention_keeps_entries_inside_horizon(store, clock) -> None:
    store.record("https://kept.example.com")
    clock.advance(days=364)
    store.record("https://fresh.example.com")
    assert len(store) == 2


def test_cap_eviction_keeps_most_recent(persistence, clock) -> None:
    small = HistoryStore(persistence=persistence, clock=clock, max_entries=5)
    try:
        for idx in range(6):
            small.record(f"https://site{idx}.example.com")
            clock.advance(seconds=1)
        addresses = {entry.address for entry in small.entries()}
        assert len(addresses) == 5
        assert "https://site0.example.com" not in addresses
    finally:
        small.close()


def test_cap_eviction_never_drops_the_entry_being_recorded(persistence, clock) -> None:
    small = HistoryStore(persistence=persistence, clock=clock, max_entries=2)
    try:
        small.record("https://a.example.com")
        small.record("https://b.example.com")
        recorded = small.record("https://c.example.com")

        assert len(small) == 2
        kept = small.get_by_address("https://c.example.com")
        assert kept is not None
        assert kept.id == recorded.id
    finally:
        small.close()


def test_cap_eviction_at_default_limit(store, clock) -> None:
    start = clock.now
    entries = [
        HistoryEntry(
            address=f"https://site{idx}.example.com",
            last_visit=start - dt.timedelta(seconds=idx),
        )
        for idx in range(10_001)
    ]

    store.import_entries(entries)

    assert len(store) == 10_000
    assert store.get_by_address("https://site10000.example.com") is None
    assert store.get_by_address("https://site0.example.com") is not None


def test_load_restores_and_cleans(persistence, clock) -> None:
    persistence.saved = [
        HistoryEntry(address="https://a.example.com", last_visit=clock.now),
        HistoryEntry(
            address="https://old.example.com", last_visit=clock.now - dt.timedelta(days=400)
        ),
    ]
    restored = HistoryStore(persistence=persistence, clock=clock)
    try:
        assert [entry.address for entry in restored.entries()] == ["https://a.example.com"]
    finally:
        restored.close()


def test_load_repairs_duplicates_and_counts(persistence, clock) -> None:
    persistence.saved = [
        HistoryEntry(
            address="https://a.example.com",
            title="Older",
            last_visit=clock.now - dt.timedelta(days=2),
        ),
        HistoryEntry(
            address="https://a.example.com",
            title="Newer",
            last_visit=clock.now,
            visit_count=0,
            typed_count=5,
        ),
    ]
    restored = HistoryStore(persistence=persistence, clock=clock)
    try:
        entries = restored.entries()
        assert len(entries) == 1
        assert entries[0].title == "Newer"
        assert entries[0].visit_count == 1
        assert entries[0].typed_count == 1
    finally:
        restored.close()


def test_save_failure_never_raises(store, persistence) -> None:
    persistence.fail = True

    entry = store.record("https://example.com", "Example")

    assert entry.visit_count == 1
    assert store.flush(timeout=5)
    assert store.last_save_error is not None
    assert len(store) == 1

    persistence.fail = False
    store.record("https://example.com", "Example")
    assert store.flush(timeout=5)
    assert store.last_save_error is None
    assert persistence.saved[0].visit_count == 2


def test_burst_of_records_coalesces_saves(store, persistence) -> None:
    for idx in range(50):
        store.record(f"https://site{idx}.example.com")
    assert store.flush(timeout=5)

    assert 1 <= persistence.saves <= 50
    assert len(persistence.saved) == 50


def test_import_entries_merges_statistics(store, clock) -> None:
    store.record("https://example.com", "Local", TransitionKind.TYPED)
    incoming = HistoryEntry(
        address="https://example.com",
        title="Remote",
        last_visit=clock.now + dt.timedelta(minutes=1),
        visit_count=3,
        typed_count=1,
        favicon=b"icon",
    )

    assert store.import_entries([incoming]) == 1

    entry = store.get_by_address("https://example.com")
    assert entry.visit_count == 4
    assert entry.typed_count == 2
    assert entry.title == "Remote"
    assert entry.favicon == b"icon"
    assert entry.last_visit == incoming.last_visit


def test_subscribe_notifies_on_mutation(store) -> None:
    changes: list[str] = []
    unsubscribe = store.subscribe(changes.append)

    store.record("https://example.com")
    store.clear_all()
    unsubscribe()
    store.record("https://example.com")

    assert changes == ["record", "clear"]


def test_listener_failure_does_not_break_record(store) -> None:
    def boom(change: str) -> None:
        raise RuntimeError("listener exploded")

    store.subscribe(boom)
    entry = store.record("https://example.com")
    assert entry.visit_count == 1


def test_stats(store) -> None:
    store.record("https://a.example.com", transition=TransitionKind.TYPED)
    store.record("https://a.example.com")
    store.record("https://b.example.com")
    store.update_favicon("https://b.example.com", b"icon")

    stats = store.stats()

    assert stats["entries"] == 2
    assert stats["visits"] == 3
    assert stats["typed_entries"] == 1
    assert stats["with_favicon"] == 1


def test_sqlite_store_survives_restart(tmp_path: Path) -> None:
    db_path = tmp_path / "history.sqlite"
    first = HistoryStore(db_path)
    try:
        first.record("https://example.com", "Example", TransitionKind.TYPED)
        first.update_favicon("https://example.com", b"icon")
    finally:
        first.close()

    second = HistoryStore(db_path)
    try:
        entry = second.get_by_address("https://example.com")
        assert entry is not None
        assert entry.typed_count == 1
        assert entry.favicon == b"icon"
    finally:
        second.close()


def test_from_config_uses_json_storage(tmp_path: Path) -> None:
    cfg = HistoryConfig(db_path=str(tmp_path / "history.json"), storage="json", max_entries=2)
    history = HistoryStore.from_config(cfg)
    try:
        for idx in range(3):
            history.record(f"https://site{idx}.example.com")
        assert len(history) == 2
    finally:
        history.close()
    assert (tmp_path / "history.json").exists()
