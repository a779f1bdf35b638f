"""ASGI entrypoint for the screen-time authority."""

from screentime.api.app import create_app
from screentime.containers import build_container

app = create_app(build_container())
