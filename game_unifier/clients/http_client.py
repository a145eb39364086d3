from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

import requests

from ..config import REQUEST, RETRY
from ..utils.utilities import (
    RateLimiter,
    network_failures_count,
    raise_on_new_network_failure,
    with_retries,
)


@dataclass
class HTTPJSONClient:
    """
    Small helper to standardize request + retry + rate limiting + stats counting.

    Provider clients pass in their own `requests.Session` and `stats` dict. A request that
    exhausts its retries returns `on_fail_return`, unless it failed at the network level,
    in which case `UpstreamUnavailableError` is raised.
    """

    session: requests.Session
    stats: dict[str, Any] | None = None

    def _bump(self, key: str, amount: int = 1) -> None:
        if self.stats is None:
            return
        self.stats[key] = int(self.stats.get(key, 0) or 0) + int(amount)

    @staticmethod
    def format_timing(stats: dict[str, Any] | None, *, key: str) -> str:
        if not stats:
            return f"{key}=0"
        return f"{key}={int(stats.get(key, 0) or 0)} {key}_ms={int(stats.get(f'{key}_ms', 0) or 0)}"

    def request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        data: dict[str, Any] | str | None = None,
        status_handlers: dict[int, Any] | None = None,
        ratelimiter: RateLimiter | None = None,
        timeout_s: float = REQUEST.timeout_s,
        retries: int = RETRY.retries,
        base_sleep_s: float = RETRY.base_sleep_s,
        counter_key: str = "http",
        context: str,
        on_fail_return: Any = None,
    ) -> Any:
        before_net = network_failures_count(self.stats)

        def _request() -> Any:
            if ratelimiter is not None:
                ratelimiter.wait()
            self._bump(counter_key)
            kwargs: dict[str, Any] = {"timeout": timeout_s}
            if params is not None:
                kwargs["params"] = params
            if headers is not None:
                kwargs["headers"] = headers
            if data is not None:
                kwargs["data"] = data
            t0 = time.perf_counter()
            if method == "POST":
                r = self.session.post(url, **kwargs)
            else:
                r = self.session.get(url, **kwargs)
            self._bump(f"{counter_key}_ms", int(round((time.perf_counter() - t0) * 1000.0)))
            if status_handlers is not None and r.status_code in status_handlers:
                return status_handlers[r.status_code]
            r.raise_for_status()
            return r.json()

        resp = with_retries(
            _request,
            retries=retries,
            base_sleep_s=base_sleep_s,
            on_fail_return=on_fail_return,
            context=context,
            retry_stats=self.stats,
        )
        if resp is on_fail_return:
            raise_on_new_network_failure(self.stats, before=before_net, context=context)
        return resp


@dataclass
class HTTPRequestDefaults:
    ratelimiter: RateLimiter | None = None
    timeout_s: float = REQUEST.timeout_s
    retries: int = RETRY.retries
    base_sleep_s: float = RETRY.base_sleep_s
    headers: dict[str, str] | None = None
    status_handlers: dict[int, Any] = field(default_factory=dict)
    counter_key: str = "http"
    context_prefix: str | None = None


@dataclass
class ConfiguredHTTPJSONClient:
    """
    HTTPJSONClient bound to one provider's defaults (rate limiter, counter key, retries).
    """

    http: HTTPJSONClient
    defaults: HTTPRequestDefaults

    def _ctx(self, context: str) -> str:
        prefix = self.defaults.context_prefix
        if prefix:
            return f"{prefix}{': ' if context else ''}{context}"
        return context

    def _call(self, method: str, url: str, **kwargs: Any) -> Any:
        headers = kwargs.pop("headers", None)
        status_handlers = kwargs.pop("status_handlers", None)
        return self.http.request_json(
            method,
            url,
            headers=self.defaults.headers if headers is None else headers,
            status_handlers=(
                self.defaults.status_handlers if status_handlers is None else status_handlers
            ),
            ratelimiter=self.defaults.ratelimiter,
            timeout_s=self.defaults.timeout_s,
            retries=self.defaults.retries,
            base_sleep_s=self.defaults.base_sleep_s,
            counter_key=kwargs.pop("counter_key", None) or self.defaults.counter_key,
            context=self._ctx(kwargs.pop("context", "")),
            **kwargs,
        )

    def get_json(self, url: str, **kwargs: Any) -> Any:
        return self._call("GET", url, **kwargs)

    def post_json(self, url: str, **kwargs: Any) -> Any:
        return self._call("POST", url, **kwargs)
