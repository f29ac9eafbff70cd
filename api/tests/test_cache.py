from jobfeed.services.cache import TTLCache, query_signature


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_entry_is_served_until_ttl_then_expires() -> None:
    clock = FakeClock()
    cache: TTLCache[list[int]] = TTLCache(300, clock=clock)
    cache.set("k", [1, 2])

    clock.now += 299
    assert cache.get("k") == [1, 2]

    clock.now += 2
    assert cache.get("k") is None
    assert len(cache) == 0


def test_lru_cap_evicts_least_recently_used() -> None:
    cache: TTLCache[str] = TTLCache(300, max_entries=2, clock=FakeClock())
    cache.set("a", "A")
    cache.set("b", "B")
    assert cache.get("a") == "A"

    cache.set("c", "C")

    assert cache.get("b") is None
    assert cache.get("a") == "A"
    assert cache.get("c") == "C"


def test_query_signature_is_case_whitespace_and_order_insensitive() -> None:
    first = query_signature("adzuna", {"keywords": "Warehouse  Jobs", "location": "Trenton", "page_size": 20})
    second = query_signature("adzuna", {"page_size": 20, "location": " trenton ", "keywords": "warehouse jobs"})
    assert first == second


def test_query_signature_ignores_empty_values_and_separates_sources() -> None:
    assert query_signature("adzuna", {"keywords": "cook", "industry": None, "location": "  "}) == query_signature(
        "adzuna", {"keywords": "cook"}
    )
    assert query_signature("adzuna", {"keywords": "cook"}) != query_signature("other", {"keywords": "cook"})
