"""FastAPI application for the ABA session staffing engine."""

import os
import time
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from aba_scheduler.errors import CUSTOM_ERRORS, SchedulingError
from aba_scheduler.manual import lock_assignment, manual_assign, trainee_assign, unlock_assignment
from aba_scheduler.models import (
    AssignRequest, LockRequest, ScheduleResponse, SolveRequest, SolveResponse,
    TraineeAssignRequest, UnlockRequest,
)
from aba_scheduler.solver import build_and_solve, prepare

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

app = FastAPI(title="ABA Session Staffing Engine", version="1.0.0")

allowed_origins = os.environ.get("ALLOWED_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_methods=["POST", "OPTIONS", "GET"],
    allow_headers=["*"],
)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    status = CUSTOM_ERRORS.get(type(exc), 400)
    logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc), "error": type(exc).__name__})


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/solve", response_model=SolveResponse)
def solve(request: SolveRequest):
    start = time.time()
    try:
        result = build_and_solve(request)
    except Exception as e:
        logger.exception("Solve failed")
        raise HTTPException(status_code=500, detail=str(e))
    result.solveTimeSeconds = round(time.time() - start, 3)
    logger.info(
        "Solve completed in %.3fs - %s (%d assignments)",
        result.solveTimeSeconds,
        result.statusMessage,
        len(result.schedule.assignments),
    )
    return result


@app.post("/schedule/lock", response_model=ScheduleResponse)
def lock(request: LockRequest):
    schedule, roster, _, issues = prepare(request)
    changed = lock_assignment(schedule, roster, request.assignmentId)
    return ScheduleResponse(schedule=schedule, changed=changed, integrityIssues=issues)


@app.post("/schedule/unlock", response_model=ScheduleResponse)
def unlock(request: UnlockRequest):
    schedule, roster, _, issues = prepare(request)
    changed = unlock_assignment(schedule, roster, request.assignmentId)
    return ScheduleResponse(schedule=schedule, changed=changed, integrityIssues=issues)


@app.post("/schedule/assign", response_model=ScheduleResponse)
def assign(request: AssignRequest):
    schedule, roster, _, issues = prepare(request)
    changed = manual_assign(
        schedule, roster, request.staffId, request.studentId, request.session, request.program,
        temporary_override=request.temporaryOverride, lock=request.lock,
    )
    return ScheduleResponse(schedule=schedule, changed=changed, integrityIssues=issues)


@app.post("/schedule/trainee", response_model=ScheduleResponse)
def trainee(request: TraineeAssignRequest):
    schedule, roster, _, issues = prepare(request)
    changed = trainee_assign(
        schedule, roster, request.staffId, request.studentId, request.session, request.program,
    )
    return ScheduleResponse(schedule=schedule, changed=changed, integrityIssues=issues)
