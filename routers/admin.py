from __future__ import annotations

from fastapi import APIRouter, Depends

from coordinator import ExerciseRuntime
from deps.auth import require_admin
from deps.exercise import get_runtime, get_translator
from i18n import Translator

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post("/reset")
async def reset_progress(runtime: ExerciseRuntime = Depends(get_runtime)):
    if not runtime.reset():
        return {"ok": False, "error": "could not clear saved progress"}
    return {"ok": True}


@router.post("/reload-locales")
async def reload_locales(translator: Translator = Depends(get_translator)):
    n = translator.reload()
    return {"ok": True, "count": n}
