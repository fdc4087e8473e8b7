from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Header, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from typing import Any, Dict, List, Optional
from . import categories
from .config import settings
from .engine import RankingEngine
from .errors import NotFoundError, PersistenceError
from .models import Bookmark, CamelModel, EngagementStats, SmartCategories, SourceKind, TrackedItem
from .sources import detect_source
from .state import CollectionStore

app = FastAPI(title="Radio Core")
store: Optional[CollectionStore] = None
engine = RankingEngine()

def get_token(x_token: Optional[str] = Header(None, alias="X-Token")):
    if settings.HTTP_SERVER_TOKEN and x_token != settings.HTTP_SERVER_TOKEN:
        raise HTTPException(status_code=401, detail="Invalid token")

def get_collection() -> CollectionStore:
    if store is None:
        raise HTTPException(status_code=503, detail="Store not ready")
    return store

@app.exception_handler(NotFoundError)
def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(PersistenceError)
def persistence_handler(request: Request, exc: PersistenceError):
    return JSONResponse(status_code=507, content={"detail": str(exc)})

@app.get("/healthz")
def healthz():
    if not store:
        return {"status": "starting"}
    return {"status": "ok"}

@app.get("/metrics", response_class=PlainTextResponse)
def metrics():
    # Simple prometheus-style text format
    if not store:
        return ""

    s = store.snapshot()
    lines = [
        f'radio_frequencies_total {len(s.items)}',
        f'radio_bookmarks_total {categories.total_bookmark_count(s.items)}',
        f'radio_sessions_total {sum(len(i.sessions) for i in s.items)}',
        f'radio_snapshot_version {s.version}'
    ]
    return "\n".join(lines)


class AddItemRequest(CamelModel):
    source_id: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    source_kind: Optional[SourceKind] = None

class BookmarkRequest(CamelModel):
    timestamp: float

class SessionRequest(CamelModel):
    duration_seconds: float

class SkipRequest(CamelModel):
    position: int = 0

class DurationRequest(CamelModel):
    seconds: float

class PeakResponse(CamelModel):
    peak: Optional[float] = None


api = APIRouter(dependencies=[Depends(get_token)])

@api.get("/status")
def status():
    s = get_collection().snapshot()
    return {
        "version": s.version,
        "total_frequencies": len(s.items),
        "total_bookmarks": categories.total_bookmark_count(s.items),
        "config": {
            "cluster_gap": settings.PEAK_CLUSTER_GAP_SECONDS,
            "min_session_seconds": settings.MIN_SESSION_SECONDS
        }
    }

@api.get("/items", response_model=List[TrackedItem])
def list_items():
    return get_collection().list_all()

@api.post("/items", response_model=TrackedItem)
def add_item(req: AddItemRequest):
    source_id, source_kind = req.source_id, req.source_kind or SourceKind.YOUTUBE
    if req.url:
        detected = detect_source(req.url)
        if not detected:
            raise HTTPException(status_code=400, detail=f"Unrecognized source: {req.url}")
        source_id, source_kind = detected.source_id, detected.source_kind
    if not source_id:
        raise HTTPException(status_code=400, detail="sourceId or url is required")

    title = req.title or f"Frequency {source_id}"
    return get_collection().add_item(source_id, title, source_kind)

@api.get("/items/ranked", response_model=List[TrackedItem])
def ranked_items():
    return engine.rank(get_collection().snapshot().items)

@api.get("/categories", response_model=SmartCategories)
def smart_categories():
    return categories.smart_categories(get_collection().snapshot().items, engine.clock())

@api.get("/snapshot")
def export_snapshot():
    return PlainTextResponse(get_collection().export_snapshot(), media_type="application/json")

@api.post("/snapshot")
def import_snapshot(document: Dict[str, Any] = Body(...)):
    if not get_collection().import_snapshot(document):
        raise HTTPException(status_code=400, detail="Snapshot rejected")
    return {"imported": True}

# Routes with a suffix go first: SoundCloud source ids contain slashes.

@api.get("/items/{source_id:path}/stats", response_model=EngagementStats)
def item_stats(source_id: str):
    s = get_collection().snapshot()
    item = s.find(source_id)
    if not item:
        raise NotFoundError(source_id)
    return engine.engagement_stats(item, s.items)

@api.get("/items/{source_id:path}/bookmarks", response_model=List[Bookmark])
def get_bookmarks(source_id: str):
    return get_collection().get_bookmarks(source_id)

@api.post("/items/{source_id:path}/bookmarks", response_model=List[Bookmark])
def add_bookmark(source_id: str, req: BookmarkRequest):
    try:
        get_collection().add_bookmark(source_id, req.timestamp)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return get_collection().get_bookmarks(source_id)

@api.delete("/items/{source_id:path}/bookmarks", response_model=List[Bookmark])
def remove_bookmark(source_id: str, timestamp: float):
    get_collection().remove_bookmark(source_id, timestamp)
    return get_collection().get_bookmarks(source_id)

@api.get("/items/{source_id:path}/peaks/next", response_model=PeakResponse)
def next_peak(source_id: str, position: float):
    peaks = engine.calculate_peaks(get_collection().get_bookmarks(source_id))
    return PeakResponse(peak=engine.next_peak(peaks, position))

@api.get("/items/{source_id:path}/peaks/previous", response_model=PeakResponse)
def previous_peak(source_id: str, position: float):
    peaks = engine.calculate_peaks(get_collection().get_bookmarks(source_id))
    return PeakResponse(peak=engine.previous_peak(peaks, position))

@api.get("/items/{source_id:path}/peaks", response_model=List[float])
def peaks(source_id: str, cluster_gap: Optional[float] = None):
    return engine.calculate_peaks(get_collection().get_bookmarks(source_id), cluster_gap=cluster_gap)

@api.post("/items/{source_id:path}/sessions", status_code=204)
def record_session(source_id: str, req: SessionRequest):
    get_collection().record_session(source_id, req.duration_seconds)

@api.post("/items/{source_id:path}/skips", status_code=204)
def record_skip(source_id: str, req: SkipRequest):
    get_collection().record_skip(source_id, req.position)

@api.post("/items/{source_id:path}/completions", status_code=204)
def record_completion(source_id: str):
    get_collection().record_completion(source_id)

@api.post("/items/{source_id:path}/played", status_code=204)
def mark_played(source_id: str):
    get_collection().update_last_played(source_id)

@api.put("/items/{source_id:path}/duration", status_code=204)
def set_duration(source_id: str, req: DurationRequest):
    get_collection().set_duration(source_id, req.seconds)

@api.get("/items/{source_id:path}", response_model=TrackedItem)
def get_item(source_id: str):
    item = get_collection().get_item(source_id)
    if not item:
        raise NotFoundError(source_id)
    return item

@api.delete("/items/{source_id:path}", status_code=204)
def remove_item(source_id: str):
    get_collection().remove_item(source_id)

app.include_router(api)
