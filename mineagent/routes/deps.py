"""Request-scoped access to the process runtime."""

from fastapi import HTTPException, Request

from mineagent import storage
from mineagent.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def check_user_id(user_id: str) -> str:
    if not storage.is_valid_user_id(user_id):
        raise HTTPException(400, "Invalid user id")
    return user_id
