# creator_match/dependencies/context.py
from fastapi import Request

from creator_match.context import AppContext


def get_context(request: Request) -> AppContext:
    return request.app.state.context
