from fastapi import Request

from context import RelayContext


def get_relay_context(request: Request) -> RelayContext:
    """The RelayContext the app was created with."""
    return request.app.state.relay
