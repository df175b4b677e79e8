"""Per-user chat interception and command shortcuts."""

from fastapi import APIRouter, Depends, HTTPException

from mineagent.runtime import Runtime

from .deps import check_user_id, get_runtime
from .models import MessageBody, SelectBody

router = APIRouter()


@router.post("/users/{user_id}/messages")
async def post_message(
    body: MessageBody,
    user_id: str = Depends(check_user_id),
    runtime: Runtime = Depends(get_runtime),
):
    """Send a chat line. handled=false means it went to public chat."""
    runtime.host.join(user_id)
    handled = runtime.transport.on_chat(user_id, body.text)
    return {"handled": handled}


@router.post("/users/{user_id}/toggle")
async def toggle(
    user_id: str = Depends(check_user_id),
    runtime: Runtime = Depends(get_runtime),
):
    """Enter or leave CLI mode."""
    runtime.host.join(user_id)
    runtime.engine.on_toggle_request(user_id)
    return {"mode": runtime.engine.mode(user_id).value}


@router.post("/users/{user_id}/confirm")
async def confirm(
    user_id: str = Depends(check_user_id),
    runtime: Runtime = Depends(get_runtime),
):
    """Run the staged command (same as typing y)."""
    if not runtime.engine.on_confirm_request(user_id):
        raise HTTPException(409, "No command awaiting confirmation")
    return {"mode": runtime.engine.mode(user_id).value}


@router.post("/users/{user_id}/cancel")
async def cancel(
    user_id: str = Depends(check_user_id),
    runtime: Runtime = Depends(get_runtime),
):
    """Discard the staged action (same as typing n)."""
    if not runtime.engine.on_cancel_request(user_id):
        raise HTTPException(409, "No pending action")
    return {"mode": runtime.engine.mode(user_id).value}


@router.post("/users/{user_id}/select")
async def select(
    body: SelectBody,
    user_id: str = Depends(check_user_id),
    runtime: Runtime = Depends(get_runtime),
):
    """Click one of the offered options."""
    try:
        runtime.host.select(user_id, body.option)
    except LookupError:
        raise HTTPException(409, "No choice pending")
    return {"mode": runtime.engine.mode(user_id).value}


@router.get("/users/{user_id}/outbox")
async def outbox(
    user_id: str = Depends(check_user_id),
    runtime: Runtime = Depends(get_runtime),
):
    """Drain the lines sent to the user since the last call."""
    return {
        "lines": runtime.host.drain(user_id),
        "choice": runtime.host.pending_choice(user_id),
        "mode": runtime.engine.mode(user_id).value,
    }
