from __future__ import annotations

from newsrss import cli
from newsrss.core.config import parse_app_config
from newsrss.core.errors import ConfigError


class _Queue:
    @classmethod
    def from_url(cls, url: str) -> "_Queue":
        return cls()

    def ping(self) -> None:
        pass


def test_worker_exits_cleanly_when_pipeline_build_fails_after_startup(monkeypatch) -> None:
    builds: list[int] = []

    def build_pipeline(app_config, *, store, log=None):
        builds.append(1)
        if len(builds) > 1:
            raise ConfigError("chrome unreachable")
        return object()

    monkeypatch.setenv("REDIS_URL", "redis://redis.test:6379/0")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(cli.cfg, "load_app_config", lambda path=None: parse_app_config({"rss_feeds": []}))
    monkeypatch.setattr(cli.SqlArticleStore, "from_url", classmethod(lambda cls, url: object()))
    monkeypatch.setattr(cli, "RedisJobQueue", _Queue)
    monkeypatch.setattr(cli, "build_default_pipeline", build_pipeline)

    assert cli.worker_main(["--concurrency", "2"]) == 2
    assert len(builds) == 2


def test_worker_reports_missing_redis_url(monkeypatch) -> None:
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.setattr(cli.cfg, "load_app_config", lambda path=None: parse_app_config({"rss_feeds": []}))

    assert cli.worker_main([]) == 2
