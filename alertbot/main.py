import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from fastapi import Body, FastAPI, HTTPException, Query

from alertbot.bots.models import PARTIAL_CLOSE, BotConfig
from alertbot.bots.registry import BotsRegistry, build_registry, load_bot_configs
from alertbot.core.config import Settings, settings
from alertbot.core.errors import ValidationError
from alertbot.core.logging import configure_logging
from alertbot.exchange.binance.client import BinanceFuturesClient
from alertbot.exchange.paper import PaperExchange
from alertbot.notify.telegram import TelegramNotifier
from alertbot.ops.context import clear_alert_id, set_alert_id
from alertbot.persistence.audit import Audit
from alertbot.persistence.db import DB
from alertbot.persistence.positions import PositionsStore
from alertbot.routing.router import AlertsRouter
from alertbot.strategy.domination import DominationStrategy
from alertbot.strategy.partial_close import SmartVolPartialCloseStrategy

log = logging.getLogger("alertbot.main")

app = FastAPI(title="AlertBot SmartVol Router")


@dataclass
class Service:
    router: AlertsRouter
    registry: BotsRegistry
    strategy: SmartVolPartialCloseStrategy
    store: PositionsStore
    audit: Audit
    mode: str


_service: Optional[Service] = None


def build_exchange(s: Settings, cfg: BotConfig):
    """One exchange handle per bot. Paper bots each get their own book."""
    if s.EXECUTION_MODE == "live":
        return BinanceFuturesClient(
            api_key=cfg.api_key or s.BINANCE_API_KEY,
            api_secret=cfg.api_secret or s.BINANCE_API_SECRET,
            base_url=s.BINANCE_FAPI_BASE_URL,
            recv_window=s.BINANCE_RECV_WINDOW,
            allowed_symbols=s.ALLOWED_SYMBOLS,
            min_notional_usdt=s.MIN_NOTIONAL_USDT,
        )
    return PaperExchange(allowed_symbols=s.ALLOWED_SYMBOLS)


def exchange_factory(s: Settings) -> Callable[[BotConfig], Any]:
    accounts: Dict[str, str] = {}

    def _for(cfg: BotConfig):
        if s.EXECUTION_MODE == "live" and cfg.strategy == PARTIAL_CLOSE:
            account = cfg.api_key or s.BINANCE_API_KEY
            if account in accounts:
                log.warning(
                    "bots %s and %s trade the same Binance account; "
                    "a full close by one flattens the symbol for both",
                    accounts[account], cfg.name,
                )
            accounts.setdefault(account, cfg.name)
        return build_exchange(s, cfg)

    return _for


def build_service(s: Settings = settings) -> Service:
    db = DB(s.DB_PATH)
    store = PositionsStore(db)
    audit = Audit(db, jsonl_path=s.AUDIT_JSONL_PATH)

    strategy = SmartVolPartialCloseStrategy(
        store,
        entry_block_seconds=s.ENTRY_BLOCK_SECONDS,
        default_max_fills=s.DEFAULT_MAX_FILLS,
        default_leverage=s.DEFAULT_LEVERAGE,
    )
    notifier = TelegramNotifier(s.TELEGRAM_BOT_TOKEN, s.TELEGRAM_CHAT_ID)
    registry = build_registry(
        load_bot_configs(s),
        exchange_for=exchange_factory(s),
        partial_close=strategy,
        notifier=notifier,
    )
    router = AlertsRouter(registry, DominationStrategy(), audit=audit)
    return Service(
        router=router,
        registry=registry,
        strategy=strategy,
        store=store,
        audit=audit,
        mode=s.EXECUTION_MODE,
    )


def get_service() -> Service:
    global _service
    if _service is None:
        _service = build_service(settings)
    return _service


def install_service(service: Optional[Service]) -> None:
    """Swap the running service (tests, reload)."""
    global _service
    _service = service


@app.on_event("startup")
async def _startup():
    """Fail-fast config validation at startup."""
    configure_logging(settings.LOG_LEVEL)
    # raises on fatal misconfiguration: crash rather than trade with a bad config
    settings.validate_runtime()
    svc = get_service()
    log.info("started mode=%s bots=%s", svc.mode, len(svc.registry))


# =========================
# Webhook
# =========================
@app.post("/webhook")
@app.post("/alerts")
def webhook(payload: Any = Body(...)):
    svc = get_service()
    alert_id = str(uuid.uuid4())
    set_alert_id(alert_id)
    try:
        svc.audit.event(event_type="ALERT", action="RECEIVED", details={"payload": payload})
        try:
            report = svc.router.handle(payload)
        except ValidationError as e:
            log.warning("alert rejected: %s", e)
            svc.audit.event(event_type="ALERT", action="REJECTED", details={"error": str(e)})
            raise HTTPException(status_code=400, detail=str(e))

        svc.audit.event(
            event_type="ALERT",
            symbol=report.alert.symbol,
            action="DISPATCHED",
            details=report.to_dict(),
        )
        return {"ok": True, "alert_id": alert_id, **report.to_dict()}
    finally:
        clear_alert_id()


# =========================
# Introspection
# =========================
@app.get("/health")
def health():
    svc = get_service()
    return {"ok": True, "mode": svc.mode, "bots": len(svc.registry)}


@app.get("/bots")
def bots():
    return [
        {
            "name": b.name,
            "strategy": b.cfg.strategy,
            "symbol_filter": list(b.cfg.symbol_filter),
            "max_fills": b.cfg.max_fills,
            "leverage": b.cfg.leverage,
        }
        for b in get_service().registry.all()
    ]


@app.get("/state")
def state():
    svc = get_service()
    return {
        **svc.strategy.snapshot(),
        "open_positions": [p.__dict__ for p in svc.store.list_open()],
    }


@app.get("/logs/events/tail")
def events_tail(limit: int = Query(50, ge=1, le=500)):
    return get_service().audit.tail(limit)
