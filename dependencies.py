# dependencies.py

from fastapi import Request

from state import ServerState


def get_server_state(request: Request) -> ServerState:
    return request.app.state.server
