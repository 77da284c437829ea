"""
Unit tests for the cache, rate limiter, configuration and input helpers
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from netcheck.errors import ConfigError, describe_error
from netcheck.util.cache import ResponseCache, cache_key
from netcheck.util.concurrency import RateLimiter
from netcheck.util.config import Config
from netcheck.util.hosts import clean_host, downgrade_to_http, ensure_scheme, host_and_port, is_ip_address
from netcheck.util.log import setup_logging
from netcheck.util.time import days_until


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class TestCacheKey:
    def test_parameter_order_does_not_change_key(self):
        a = cache_key("/checks/og-image", {"url": "x", "domain": "y"})
        b = cache_key("/checks/og-image", {"domain": "y", "url": "x"})
        assert a == b == "/checks/og-image?domain=y&url=x"

    def test_no_params_is_route(self):
        assert cache_key("/checks/my-ip") == "/checks/my-ip"
        assert cache_key("/checks/my-ip", {}) == "/checks/my-ip"


class TestResponseCache:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        return ResponseCache(clock=clock)

    def test_hit_within_ttl(self, cache, clock):
        cache.set("k", {"a": 1}, ttl=60)
        clock.advance(59)
        assert cache.get("k") == ({"a": 1}, True)

    def test_expired_entry_is_evicted_on_read(self, cache, clock):
        cache.set("k", "v", ttl=60)
        clock.advance(60)
        assert cache.get("k") == (None, False)
        assert len(cache) == 0

    def test_miss(self, cache):
        assert cache.get("absent") == (None, False)

    def test_clear(self, cache):
        cache.set("a", 1, ttl=10)
        cache.set("b", 2, ttl=10)
        assert cache.clear() == 2
        assert len(cache) == 0


class TestRateLimiter:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    def test_61st_call_in_burst_is_rejected(self, clock):
        limiter = RateLimiter(default_rpm=60, clock=clock)
        admitted = [limiter.allow("1.2.3.4", "/checks/dns") for _ in range(61)]
        assert all(admitted[:60])
        assert admitted[60] is False

    def test_refill_after_one_second(self, clock):
        limiter = RateLimiter(default_rpm=60, clock=clock)
        for _ in range(60):
            limiter.allow("1.2.3.4", "/checks/dns")
        assert limiter.allow("1.2.3.4", "/checks/dns") is False

        clock.advance(1.0)
        assert limiter.allow("1.2.3.4", "/checks/dns") is True
        assert limiter.allow("1.2.3.4", "/checks/dns") is False

    def test_refill_is_capped_at_capacity(self, clock):
        limiter = RateLimiter(default_rpm=2, clock=clock)
        limiter.allow("ip", "/r")
        clock.advance(3600)
        assert [limiter.allow("ip", "/r") for _ in range(3)] == [True, True, False]

    def test_buckets_are_per_ip_and_route(self, clock):
        limiter = RateLimiter(default_rpm=1, clock=clock)
        assert limiter.allow("a", "/r1")
        assert not limiter.allow("a", "/r1")
        assert limiter.allow("b", "/r1")
        assert limiter.allow("a", "/r2")
        assert len(limiter) == 3

    def test_route_override(self, clock):
        limiter = RateLimiter(default_rpm=60, per_route={"/checks/comprehensive": 6}, clock=clock)
        assert limiter.limit_for("/checks/comprehensive") == 6
        assert sum(limiter.allow("ip", "/checks/comprehensive") for _ in range(10)) == 6

    def test_zero_limit_is_unlimited(self, clock):
        limiter = RateLimiter(default_rpm=0, clock=clock)
        assert all(limiter.allow("ip", "/r") for _ in range(1000))
        assert len(limiter) == 0


class TestConfig:
    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for var in ("NETCHECK_MODE", "API_SECRET_KEY", "PORT", "RATE_LIMIT_RPM",
                    "HTTP_TIMEOUT", "COMPREHENSIVE_TIMEOUT", "LOG_FILE"):
            monkeypatch.delenv(var, raising=False)

    def test_defaults(self, tmp_path):
        config = Config(env_file=tmp_path / "missing.env")
        assert config.mode == "production"
        assert config.port == 8080
        assert config.rate_limit_rpm == 60
        assert config.http_timeout == 15.0
        assert config.comprehensive_timeout == 45.0
        assert config.route_ttls["/checks/email-config"] == 600
        assert config.route_rate_limits["/checks/comprehensive"] == 6
        assert config.log_file is None

    def test_env_file_is_loaded(self, tmp_path, monkeypatch):
        env = tmp_path / ".env"
        env.write_text("NETCHECK_MODE=development\nRATE_LIMIT_RPM=5\nAPI_SECRET_KEY=s3cret\n")
        config = Config(env_file=env)
        assert config.is_development
        assert config.rate_limit_rpm == 5
        assert "s3cret" not in str(config.to_dict())
        # load_dotenv writes into os.environ; undo for other tests
        for var in ("NETCHECK_MODE", "RATE_LIMIT_RPM", "API_SECRET_KEY"):
            monkeypatch.delenv(var, raising=False)

    def test_invalid_values_raise(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PORT", "eighty")
        with pytest.raises(ConfigError):
            Config(env_file=tmp_path / "missing.env")

    def test_unknown_mode_raises(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NETCHECK_MODE", "staging")
        with pytest.raises(ValueError):
            Config(env_file=tmp_path / "missing.env")


class TestHosts:
    @pytest.mark.parametrize("value,expected", [
        ("example.com", "example.com"),
        ("https://example.com/a/b", "example.com"),
        ("http://example.com:8080/", "example.com:8080"),
        ("  example.com  ", "example.com"),
    ])
    def test_clean_host(self, value, expected):
        assert clean_host(value) == expected

    def test_ensure_scheme(self):
        assert ensure_scheme("example.com/x") == "https://example.com/x"
        assert ensure_scheme("http://example.com") == "http://example.com"

    def test_downgrade(self):
        assert downgrade_to_http("https://example.com/a") == "http://example.com/a"
        assert downgrade_to_http("http://example.com") == "http://example.com"

    def test_is_ip_address(self):
        assert is_ip_address("8.8.8.8")
        assert is_ip_address("2001:4860:4860::8888")
        assert not is_ip_address("example.com")

    @pytest.mark.parametrize("value,expected", [
        ("example.com", ("example.com", 443)),
        ("https://Example.com:8443/path", ("example.com", 8443)),
        ("[2001:db8::1]:853", ("2001:db8::1", 853)),
    ])
    def test_host_and_port(self, value, expected):
        assert host_and_port(value, 443) == expected

    def test_host_and_port_rejects_bad_port(self):
        with pytest.raises(ValueError):
            host_and_port("example.com:99999", 443)


class TestTimeAndErrors:
    def test_days_until_truncates_toward_zero(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert days_until(now + timedelta(days=10, hours=23), now) == 10
        assert days_until(now - timedelta(days=2, hours=12), now) == -2

    def test_describe_error_never_empty(self):
        assert describe_error(TimeoutError()) == "timed out"
        assert describe_error(KeyError()) == "KeyError"
        assert describe_error(OSError("refused")) == "refused"


class TestLogging:
    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_file_handler_and_level_name(self, tmp_path):
        log_file = tmp_path / "logs" / "netcheck.log"
        setup_logging(log_file, "debug")

        logging.getLogger("netcheck.test").debug("probe finished")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert logging.getLogger().level == logging.DEBUG
        assert "| DEBUG    | netcheck.test | probe finished" in log_file.read_text()
        assert logging.getLogger("aioquic").level == logging.WARNING

    def test_unknown_level_name_falls_back_to_info(self):
        setup_logging(None, "chatty")
        assert logging.getLogger().level == logging.INFO
