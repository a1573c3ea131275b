import io
import logging
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from droplet import DropletPayload, parse_droplet
from errors import DecodeError, ErrorKind
from receiver import Progress, ReceiverSession
from settings import Settings

logger = logging.getLogger(__name__)

settings = Settings.from_env()

app = FastAPI()

# Add CORS middleware to allow requests from the scanner page
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify actual origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# In-memory storage for the session state
# In a real production app, use Redis/Memcached
active_sessions: Dict[str, ReceiverSession] = {}
# Store file metadata (filename, content_type) for each session
file_metadata: Dict[str, Dict[str, str]] = {}

# --- Pydantic Models for Validation ---

class InitReceiverRequest(BaseModel):
    session_id: str
    num_blocks: int = Field(ge=0)
    block_size: int = Field(default=settings.default_block_size, gt=0)
    filename: Optional[str] = None
    content_type: Optional[str] = None

class SubmitDropletRequest(BaseModel):
    session_id: str
    droplet: DropletPayload

class ScanRequest(BaseModel):
    session_id: str
    text: str

# --- Helpers ---

def get_session(session_id: str) -> ReceiverSession:
    session = active_sessions.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="No decoder found")
    return session

def progress_body(session_id: str, progress: Progress) -> dict:
    result_url = f"/download/{session_id}" if progress.is_complete else None
    return {
        "progress": progress.progress,
        "num_solved": progress.num_solved,
        "num_blocks": progress.num_blocks,
        "num_pending": progress.num_pending,
        "droplets_received": progress.droplets_received,
        "is_complete": progress.is_complete,
        "stalled": progress.stalled,
        "result_url": result_url,
    }

def submit_to(session_id: str, session: ReceiverSession, droplet: DropletPayload) -> dict:
    """Ingest one droplet, mapping decoder errors to HTTP errors the scanner can show and skip."""
    try:
        progress = session.submit(droplet)
    except DecodeError as e:
        logger.info("Rejected droplet %s for session %s: %s", droplet.seed, session_id, e)
        status_code = 422 if e.kind == ErrorKind.MALFORMED_DROPLET else 400
        raise HTTPException(status_code=status_code, detail=e.to_dict())
    return progress_body(session_id, progress)

# --- Routes ---

@app.post("/init_receiver")
async def init_receiver(request: InitReceiverRequest):
    """
    Initialize a decoder session on the receiver side.
    """
    if request.session_id not in active_sessions:
        active_sessions[request.session_id] = ReceiverSession(
            request.num_blocks, request.block_size, settings
        )
        logger.info(
            "Session %s: expecting %d blocks of %d bytes",
            request.session_id, request.num_blocks, request.block_size,
        )
    if request.filename or request.content_type:
        file_metadata[request.session_id] = {
            "filename": request.filename or "transferred_file.bin",
            "content_type": request.content_type or "application/octet-stream",
        }
    return {"status": "ready"}

@app.post("/submit_droplet")
async def submit_droplet(request: SubmitDropletRequest):
    """
    Receive a scanned QR packet and attempt to solve the file.
    """
    session = get_session(request.session_id)
    return submit_to(request.session_id, session, request.droplet)

@app.post("/scan")
async def scan(request: ScanRequest):
    """
    Receive the raw text of a scanned QR code.

    The first droplet of an unknown session creates it from the block
    parameters the droplet declares.
    """
    try:
        droplet = parse_droplet(request.text)
    except DecodeError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())

    session = active_sessions.get(request.session_id)
    if session is not None:
        return submit_to(request.session_id, session, droplet)

    # Register the session only once its first droplet has been accepted
    session = ReceiverSession.from_record(droplet, settings)
    body = submit_to(request.session_id, session, droplet)
    active_sessions[request.session_id] = session
    logger.info(
        "Session %s: started from first droplet, %d blocks of %d bytes",
        request.session_id, droplet.num_blocks, droplet.block_size,
    )
    return body

@app.get("/progress/{session_id}")
async def progress(session_id: str):
    session = get_session(session_id)
    return progress_body(session_id, session.snapshot())

@app.get("/download/{session_id}")
async def download(session_id: str):
    """
    Stream the reconstructed file back to the user.
    """
    session = active_sessions.get(session_id)
    if not session or not session.snapshot().is_complete:
        raise HTTPException(status_code=404, detail="File not ready")

    try:
        result_bytes = session.result()
    except DecodeError as e:
        raise HTTPException(status_code=409, detail=e.to_dict())

    # Get file metadata if available
    metadata = file_metadata.get(session_id, {})
    filename = metadata.get("filename", "transferred_file.bin")
    content_type = metadata.get("content_type", "application/octet-stream")

    # StreamingResponse is more efficient for file downloads
    return StreamingResponse(
        io.BytesIO(result_bytes),
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )

@app.post("/reset/{session_id}")
async def reset(session_id: str):
    session = get_session(session_id)
    return progress_body(session_id, session.reset())

@app.delete("/session/{session_id}")
async def discard(session_id: str):
    get_session(session_id)
    del active_sessions[session_id]
    file_metadata.pop(session_id, None)
    return {"status": "discarded"}

if __name__ == '__main__':
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    # Run with: python app.py
    uvicorn.run(app, host=settings.host, port=settings.port)
