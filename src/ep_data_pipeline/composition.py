"""Composition root for wiring the request pipeline."""

from __future__ import annotations

import requests

from .cli import create_app
from .config import ClientConfig
from .infrastructure import RequestPipeline, RequestsTransport, SharedResources


def build_shared_resources(config: ClientConfig) -> SharedResources:
    """Build one cache, limiter and monitor to pool across related pipelines."""
    return SharedResources.from_config(config)


def build_pipeline(
    *,
    config: ClientConfig,
    shared: SharedResources | None = None,
    session: requests.Session | None = None,
) -> RequestPipeline:
    """Build a requests-backed pipeline.

    Args:
        config: Client configuration (ignored when `shared` is given, which carries its own).
        shared: Existing resources to pool cache and rate limit state with other pipelines.
        session: Optional requests session; one is created and owned otherwise.
    """
    resources = shared or build_shared_resources(config)
    return RequestPipeline(shared=resources, transport=RequestsTransport(session=session))


app = create_app(build_pipeline)
