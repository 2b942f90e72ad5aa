import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Response

from main import TimeClock
from models.schema import ClockSummary, PunchEvent
from utils.helper import JsonFileStore
from utils.report import ReportExportError

STORE_PATH = os.getenv("PUNCH_CLOCK_STORE", "punch_clock.json")

clock = TimeClock(JsonFileStore(STORE_PATH))


@asynccontextmanager
async def lifespan(app: FastAPI):
    state = clock.load()
    logging.info(f"Ledger loaded for {state.date_key}: {len(state.today_punches)} punch(es), {len(state.history)} archived day(s)")
    yield


app = FastAPI(title="Punch Clock", lifespan=lifespan)


@app.post("/punch", response_model=PunchEvent)
def register_punch():
    return clock.add_punch()


@app.post("/clear")
def clear_punches():
    clock.clear_today()
    return {"status": "Today's punches cleared."}


@app.get("/summary", response_model=ClockSummary)
def get_summary():
    return clock.summary()


@app.get("/report")
def download_report():
    try:
        filename, pdf = clock.report()
    except ReportExportError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
