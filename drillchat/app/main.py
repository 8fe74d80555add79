"""
main.py
-------
FastAPI app exposing the drilling assistant.

POST /api/chat relays the conversation (grounded with the reference PDF) to
the LLM and returns the provider envelope with the chart/table block
sanitized. Session endpoints mirror the browser's stored history and theme;
/api/render turns a message into HTML plus a plotly figure.
Includes /health for liveness checks.
"""
from __future__ import annotations
from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from ..config import settings
from ..errors import DrillChatError
from ..graph.graph import envelope_with_processed
from ..graph.memory import check_session_id
from ..models import ChatRequest, HistoryUpdate, Message, RenderedMessage, SessionState, ThemeUpdate
from ..render.message import render_message
from ..utils.app_logging import get_logger, setup_logging
from .deps import get_gateway, get_store

setup_logging()
log = get_logger("app")

app = FastAPI(title="Drilling Formulas Assistant", version="1.0.0")


@app.exception_handler(DrillChatError)
def handle_drillchat_error(request: Request, exc: DrillChatError):
    log.error({"event": "request_failed", "path": request.url.path, "error": exc.error,
               "details": exc.details, "status": exc.http_status})
    return JSONResponse(exc.to_envelope(), status_code=exc.http_status)


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    log.error("Invalid request body for %s: %s", request.url.path, problems)
    return JSONResponse({"error": "Invalid request body", "details": problems}, status_code=400)


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception):
    log.error("Unhandled error for %s", request.url.path, exc_info=exc)
    return _internal_error(exc)


def _internal_error(exc: Exception) -> JSONResponse:
    return JSONResponse({"error": "Internal Server Error", "details": str(exc)}, status_code=500)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok"}


@app.post("/api/chat")
def chat(req: ChatRequest, gateway=Depends(get_gateway), store=Depends(get_store)):
    """
    One round-trip: validate, ground with PDF context, call the model, extract
    and sanitize the data block. With `session_id`, the user turn and the
    reply are appended to that session's stored history.
    """
    log.info("Received POST request to /api/chat")
    if req.session_id is not None:
        check_session_id(req.session_id)
    try:
        result = gateway.chat(req.messages)

        if req.session_id is not None:
            reply = Message(
                role="assistant",
                content=result.processed.text,
                graph_data=result.processed.graph_data,
                table_data=result.processed.table_data,
            )
            store.append(req.session_id, [req.messages[-1], reply])

        response = JSONResponse(envelope_with_processed(result))
    except DrillChatError:
        raise
    except Exception as e:
        log.exception("Fatal error in /api/chat handler")
        return _internal_error(e)

    log.info("Successfully received and processed valid response from upstream.")
    return response


@app.post("/api/render", response_model=RenderedMessage)
def render(message: Message):
    """HTML for one chat bubble, with the chart figure JSON when a graph is attached."""
    return render_message(message)


@app.get("/api/sessions/{session_id}")
def read_session(session_id: str, store=Depends(get_store)):
    return _session_body(store.read(session_id))


@app.put("/api/sessions/{session_id}/messages")
def replace_messages(session_id: str, body: HistoryUpdate, store=Depends(get_store)):
    return _session_body(store.replace_messages(session_id, body.messages))


@app.delete("/api/sessions/{session_id}/messages")
def clear_messages(session_id: str, store=Depends(get_store)):
    return _session_body(store.clear_messages(session_id))


@app.put("/api/sessions/{session_id}/theme")
def set_theme(session_id: str, body: ThemeUpdate, store=Depends(get_store)):
    return _session_body(store.set_theme(session_id, body.theme))


def _session_body(state: SessionState):
    return state.model_dump(by_alias=True, exclude_none=True)


def main() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("drillchat.app.main:app", host=settings.host, port=settings.port)
