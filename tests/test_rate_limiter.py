from meetslot import rate_limiter


def test_memory_only_limit(monkeypatch):
    monkeypatch.setattr(rate_limiter, "memory_cache", {})

    results = [rate_limiter.check_rate_limit("test:1.2.3.4", 3, 60, None)[0] for _ in range(4)]

    assert results == [True, True, True, False]


def test_keys_are_counted_separately(monkeypatch):
    monkeypatch.setattr(rate_limiter, "memory_cache", {})

    for _ in range(3):
        rate_limiter.check_rate_limit("test:a", 3, 60, None)

    assert rate_limiter.check_rate_limit("test:b", 3, 60, None)[0]
