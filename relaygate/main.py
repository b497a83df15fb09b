import logging
import math
import threading
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .config import Settings, effective_log_level, load_settings, validate_settings
from .errors import CircuitOpenError, InvalidOwnerError, NotOwnerError, RelayError
from .event_log import EventLog, get_event_log
from .identity import Identity, parse_identity
from .keys import KeyProvider, get_key_provider
from .logging_config import audit_log, configure_logging, set_request_id
from .models import RelayRequest, TransferOwnershipRequest
from .rate_limit import RateLimiter
from .relay import AccessControlledRelay, restore_relay
from .security import (
    ValidationError,
    caller_from_headers,
    extract_client_id,
    request_id_from_headers,
    validate_hex_payload,
    validate_message_type,
)
from .util import hex_to_bytes

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotOwnerError: 403,
    InvalidOwnerError: 400,
    CircuitOpenError: 503,
}


class RelayHost:
    """Holds the single relay instance and serializes every call against it."""

    def __init__(self, relay: AccessControlledRelay, keys: KeyProvider, limiter: RateLimiter):
        self.relay = relay
        self.keys = keys
        self.limiter = limiter
        self.lock = threading.Lock()

    @property
    def event_log(self) -> EventLog:
        return self.relay.event_log


def build_host(settings: Settings, keys: Optional[KeyProvider] = None,
               event_log: Optional[EventLog] = None) -> RelayHost:
    problems = validate_settings(settings)
    if problems:
        raise RuntimeError("invalid configuration: " + "; ".join(problems))

    if keys is None:
        keys = get_key_provider(settings.signer, settings.signing_key_path, settings.trust_store_path)
    if event_log is None:
        event_log = get_event_log(settings, keys)
    owner = parse_identity(settings.initial_owner, "RELAYGATE_INITIAL_OWNER")

    try:
        history = event_log.records()
    except NotImplementedError:
        history = []
    relay = restore_relay(owner, history, event_log)

    logger.info("Relay ready on %s log: owner=%s paused=%s", event_log.name, relay.owner, relay.paused)
    return RelayHost(relay, keys, RateLimiter(settings.relay_rpm))


def _caller(request: Request) -> Identity:
    raw = caller_from_headers(request.headers)
    if raw is None:
        raise HTTPException(401, "MISSING_CALLER")
    return parse_identity(raw, "X-Caller-Identity")


def create_app(settings: Optional[Settings] = None, keys: Optional[KeyProvider] = None,
               event_log: Optional[EventLog] = None, configure_logs: bool = True) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        s = settings or load_settings()
        if configure_logs:
            configure_logging(effective_log_level(s), json_format=s.log_json)
        app.state.host = build_host(s, keys=keys, event_log=event_log)
        yield
        close = getattr(app.state.host.event_log, "close", None)
        if close:
            close()

    app = FastAPI(title="RelayGate", lifespan=lifespan)

    @app.middleware("http")
    async def _request_id(request: Request, call_next):
        request_id = set_request_id(request_id_from_headers(request.headers))
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(RelayError)
    async def _relay_error(request: Request, exc: RelayError):
        return JSONResponse(status_code=ERROR_STATUS.get(type(exc), 400), content=exc.to_dict())

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={
            "error": "VALIDATION_ERROR", "field": exc.field, "reason": exc.message
        })

    def host() -> RelayHost:
        return app.state.host

    @app.get("/health")
    def health():
        return {"status": "ok", "event_log": host().event_log.name}

    @app.get("/owner")
    def owner():
        return {"owner": host().relay.owner}

    @app.get("/paused")
    def paused():
        return {"paused": host().relay.paused}

    @app.get("/state")
    def state():
        with host().lock:
            return host().relay.state().to_dict()

    @app.post("/relay")
    def relay(req: RelayRequest, request: Request):
        caller = _caller(request)
        to = parse_identity(req.to, "to")
        message_type = validate_message_type(req.message_type)
        data = hex_to_bytes(validate_hex_payload(req.data))

        h = host()
        client_id = extract_client_id(caller)
        if not h.limiter.allow(client_id):
            audit_log.rate_limit_exceeded(client_id, "/relay")
            retry = math.ceil(h.limiter.retry_after(client_id))
            raise HTTPException(429, "RATE_LIMIT", headers={"Retry-After": str(retry)})

        with h.lock:
            record = h.relay.relay(caller, to, message_type, data)
        return record.to_dict()

    @app.post("/transfer_ownership")
    def transfer_ownership(req: TransferOwnershipRequest, request: Request):
        caller = _caller(request)
        new_owner = parse_identity(req.new_owner, "new_owner")
        h = host()
        with h.lock:
            record = h.relay.transfer_ownership(caller, new_owner)
        return record.to_dict()

    @app.post("/toggle_pause")
    def toggle_pause(request: Request):
        caller = _caller(request)
        h = host()
        with h.lock:
            record = h.relay.toggle_pause(caller)
        return record.to_dict()

    @app.get("/event_log")
    def event_log_export():
        try:
            return host().event_log.export()
        except NotImplementedError:
            raise HTTPException(501, "EVENT_LOG_NOT_READABLE")

    @app.get("/event_log/proof")
    def event_log_proof():
        try:
            return host().event_log.proof()
        except NotImplementedError:
            raise HTTPException(501, "EVENT_LOG_NOT_READABLE")

    @app.get("/trust_store")
    def trust_store():
        return host().keys.get_trust_store()

    return app


app = create_app()
