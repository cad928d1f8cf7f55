from __future__ import annotations

from typing import Any, Dict, List

from store_scrap.core.models import ErrorRecord, SchedulerState, StoreResult


def _encode_error(error: ErrorRecord) -> dict:
    payload: Dict[str, Any] = {"message": error.message}
    if error.preserved:
        payload["preserved"] = True
    return payload


def _decode_error(payload: Any) -> ErrorRecord:
    if isinstance(payload, dict):
        return ErrorRecord(message=str(payload.get("message", "")), preserved=bool(payload.get("preserved", False)))
    return ErrorRecord(message=str(payload))


def encode_result(result: StoreResult) -> dict:
    payload: Dict[str, Any] = {
        "country": result.country,
        "store": result.store,
        "updatedAt": result.updated_at,
    }
    if result.preserved_at:
        payload["preservedAt"] = result.preserved_at
        payload["preservedCount"] = result.preserved_count
    payload["new"] = list(result.new)
    payload["updated"] = list(result.updated)
    payload["errors"] = [_encode_error(error) for error in result.errors]
    return payload


def decode_result(payload: dict) -> StoreResult:
    preserved_at = payload.get("preservedAt")
    return StoreResult(
        country=payload["country"],
        store=payload["store"],
        updated_at=payload.get("updatedAt") or preserved_at or "",
        new=list(payload.get("new") or []),
        updated=list(payload.get("updated") or []),
        errors=[_decode_error(item) for item in payload.get("errors") or []],
        preserved_at=preserved_at,
        preserved_count=int(payload.get("preservedCount", 1 if preserved_at else 0)),
    )


def encode_scheduler_state(state: SchedulerState) -> dict:
    return {
        "lastRunAt": state.last_run_at,
        "runType": state.run_type,
        "incrementalCursor": state.incremental_cursor,
        "incrementalSize": state.incremental_size,
        "countriesProcessed": list(state.countries_processed),
    }


def _int_field(payload: dict, name: str, default: int) -> int:
    try:
        return int(payload.get(name) or default)
    except (TypeError, ValueError):
        return default


def decode_scheduler_state(payload: Any) -> SchedulerState:
    if not isinstance(payload, dict) or not payload:
        return SchedulerState()
    default = SchedulerState()
    raw_processed = payload.get("countriesProcessed")
    processed: List[str] = [str(code) for code in raw_processed] if isinstance(raw_processed, list) else []
    size = _int_field(payload, "incrementalSize", default.incremental_size)
    return SchedulerState(
        last_run_at=payload.get("lastRunAt"),
        run_type=payload.get("runType"),
        incremental_cursor=_int_field(payload, "incrementalCursor", 0),
        incremental_size=size if size > 0 else default.incremental_size,
        countries_processed=processed,
    )
