import logging
import threading
from importlib import import_module

from fastapi import FastAPI

from config import DATABASE_URL, LOG_LEVEL, WARM_EMBEDDING_MODEL
from services import build_service, check_connection, init_db, make_engine, make_session_factory
from services import model_loader

log = logging.getLogger(__name__)

app = FastAPI(title="Similar Image Pair Labeler")


# --------------------------
# Safe router registration
# --------------------------
routers = [
    ("api.similar", "/similar", "Similar"),
]

for module_name, prefix, tag in routers:
    try:
        module = import_module(module_name)
        if hasattr(module, "router"):
            app.include_router(module.router, prefix=prefix, tags=[tag])
            log.info("[ROUTER INFO] Registered router: %s", module_name)
        else:
            log.warning("[ROUTER WARNING] %s has no 'router' attribute, skipping.", module_name)
    except ModuleNotFoundError as e:
        log.error("[ROUTER ERROR] Could not import %s: %s", module_name, e)

@app.on_event("startup")
async def startup_event():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    # tests and embedding callers may install their own service before startup
    if getattr(app.state, "similarity", None) is None:
        engine = make_engine(DATABASE_URL)
        init_db(engine)
        app.state.engine = engine
        app.state.similarity = build_service(make_session_factory(engine))
        if WARM_EMBEDDING_MODEL:
            log.info("[MODEL INIT] Background model load starting...")
            threading.Thread(target=model_loader.load_model_bg, daemon=True).start()

    # bring the classifier in line with the persisted annotation history
    app.state.similarity.trainer.schedule_retrain()

# --------------------------
# Root endpoint
# --------------------------

@app.get("/")
async def root():
    return {"message": "Similar image pair labeler is running"}

# --------------------------
# Health endpoint
# --------------------------
@app.get("/health")
async def health():
    engine = getattr(app.state, "engine", None)
    service = getattr(app.state, "similarity", None)
    db_connected = check_connection(engine) if engine is not None else False
    return {
        "db_connected": db_connected,
        "embedding_model_loaded": model_loader.loaded,
        "classifier_generation": service.slot.generation if service else None,
        "retrains_pending": service.trainer.pending if service else 0,
        "status": "ok" if db_connected and service else "partial",
    }
