from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import datetime

from StartupMind.config import load_settings
from StartupMind.entries import StartupEntry, make_entry
from StartupMind.errors import InvalidFormat, NotFound, StartupMindError
from StartupMind.log import setup_logging
from StartupMind.session import StartupSession, filter_entries
from StartupMind.utils.arg_normalize import normalize_args


def create_app(session: Optional[StartupSession] = None) -> FastAPI:
    if session is None:
        settings = load_settings()
        setup_logging(settings.debug)
        session = StartupSession.from_settings(settings)
        session.refresh()

    app = FastAPI(title="StartupMind API")
    app.state.session = session

    # CORS for a local frontend (file:// or localhost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    class EntryRef(BaseModel):
        name: str
        location: str

    class NewEntry(BaseModel):
        name: str
        path: str
        location: str = "user-registry"

    class SelectionRequest(BaseModel):
        entries: List[EntryRef]

    class MutationResponse(BaseModel):
        results: List[Dict[str, Any]]
        summary: Dict[str, int]

    class BackupInfo(BaseModel):
        snapshot_id: str
        timestamp: datetime
        entry_count: int

    class RestoreRequest(BaseModel):
        apply: bool = False

    def _resolve(refs: List[EntryRef]) -> List[StartupEntry]:
        out = []
        for ref in refs:
            try:
                a = normalize_args("select", {"name": ref.name, "location": ref.location})
            except ValueError as e:
                raise HTTPException(status_code=422, detail=str(e))
            entry = session.find(a["location"], a["name"])
            if entry is None:
                raise HTTPException(status_code=404, detail=f"no entry {ref.name!r} in {a['location'].value}")
            out.append(entry)
        return out

    @app.get("/entries")
    def list_entries(search: str = "", enabled_only: bool = False, disabled_only: bool = False,
                     include_system: bool = True):
        shown = filter_entries(session.entries, search, enabled_only, disabled_only, include_system)
        return [e.to_dict() for e in shown]

    @app.get("/summary")
    def summary():
        return session.summary()

    @app.post("/entries/refresh")
    def refresh():
        return [e.to_dict() for e in session.refresh()]

    @app.post("/entries", response_model=MutationResponse)
    def add_entry(req: NewEntry):
        try:
            a = normalize_args("add", req.model_dump())
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        entry = make_entry(a["name"], a["path"], a["location"])
        out = session.add(entry)
        return MutationResponse(results=[out], summary=session.summary())

    @app.post("/entries/remove", response_model=MutationResponse)
    def remove_entries(req: SelectionRequest):
        results = session.remove_many(_resolve(req.entries))
        return MutationResponse(results=results, summary=session.summary())

    @app.post("/entries/enable", response_model=MutationResponse)
    def enable_entries(req: SelectionRequest):
        results = session.set_enabled_many(_resolve(req.entries), True)
        return MutationResponse(results=results, summary=session.summary())

    @app.post("/entries/disable", response_model=MutationResponse)
    def disable_entries(req: SelectionRequest):
        results = session.set_enabled_many(_resolve(req.entries), False)
        return MutationResponse(results=results, summary=session.summary())

    @app.post("/backups")
    def create_backup():
        try:
            snapshot_id = session.backup()
        except StartupMindError as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {"snapshot_id": snapshot_id}

    @app.get("/backups", response_model=List[BackupInfo])
    def list_backups():
        return [BackupInfo(snapshot_id=s.snapshot_id, timestamp=s.timestamp, entry_count=s.entry_count)
                for s in session.store.list()]

    @app.post("/backups/{snapshot_id}/restore")
    def restore_backup(snapshot_id: str, req: Optional[RestoreRequest] = None):
        try:
            out = session.restore(snapshot_id, apply=bool(req and req.apply))
        except NotFound as e:
            raise HTTPException(status_code=404, detail=str(e))
        except InvalidFormat as e:
            raise HTTPException(status_code=422, detail=str(e))
        except StartupMindError as e:
            raise HTTPException(status_code=500, detail=str(e))
        out["entries"] = [e.to_dict() for e in session.entries]
        return out

    return app


# uvicorn server:app
app = create_app()
