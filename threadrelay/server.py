"""HTTP ingress for the Slack Events API."""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse

from .app import RelayApp
from .routing.errors import StorageError

logger = logging.getLogger("threadrelay.server")


def create_app(relay: RelayApp) -> FastAPI:
    """Build the FastAPI app serving ``/slack/events``.

    A StorageError answers 500 so Slack redelivers the event later;
    everything else is acknowledged with 200. Redeliveries caused by a
    slow acknowledgement (retry reason ``http_timeout``) are acknowledged
    without being handled again.
    """
    app = FastAPI(title="threadrelay", docs_url=None, redoc_url=None)
    app.state.relay = relay

    @app.get("/", response_class=PlainTextResponse)
    async def health() -> str:
        return "threadrelay is running"

    @app.post("/slack/events")
    async def slack_events(request: Request):
        payload = await request.json()
        kind = payload.get("type")

        if kind == "url_verification":
            return {"challenge": payload.get("challenge")}
        if kind != "event_callback":
            return {"ok": True}

        retry = request.headers.get("X-Slack-Retry-Num")
        if retry:
            reason = request.headers.get("X-Slack-Retry-Reason")
            logger.info(f"Redelivery #{retry} of {payload.get('event_id')} ({reason})")
            # The first delivery is still running (or done) behind a slow ack
            if reason == "http_timeout":
                return {"ok": True}

        try:
            await app.state.relay.handle_event(payload.get("event") or {})
        except StorageError as e:
            logger.error(f"Event {payload.get('event_id')} not processed: {e}")
            raise HTTPException(status_code=500, detail="storage unavailable")
        return {"ok": True}

    return app
