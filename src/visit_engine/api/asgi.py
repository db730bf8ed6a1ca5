"""ASGI entrypoint for the visit engine API."""

from visit_engine.api.app import create_app
from visit_engine.containers import build_container

app = create_app(build_container())
