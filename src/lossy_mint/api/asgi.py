"""ASGI entrypoint for the escrow mint API."""

from lossy_mint.api.app import create_app
from lossy_mint.containers import build_container

app = create_app(build_container())
