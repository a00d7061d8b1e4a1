"""Per-request wiring for route handlers."""

from fastapi import Request

from relayflow.core.engine import WorkflowExecutor


async def get_store(request: Request):
    """The app-wide store when one is set, else a Repository on a fresh session."""
    store = getattr(request.app.state, "store", None)
    if store is not None:
        yield store
        return
    from relayflow.db.repository import Repository
    async with request.app.state.async_session() as session:
        yield Repository(session)


def build_executor(request: Request, store) -> WorkflowExecutor:
    state = request.app.state
    return WorkflowExecutor(
        registry=state.registry,
        store=store,
        policy_provider=getattr(state, "policy_provider", None),
        callbacks=getattr(state, "callbacks", None),
    )
