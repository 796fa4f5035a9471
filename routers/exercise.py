# routers/exercise.py
from fastapi import APIRouter, Depends

from coordinator import ExerciseRuntime, render_view
from deps.exercise import get_language, get_runtime, get_translator
from i18n import Translator
from schemas.views import AnswerRequest, ExerciseView

router = APIRouter(prefix="/exercise", tags=["exercise"])


@router.get("", response_model=ExerciseView)
async def get_exercise(
    runtime: ExerciseRuntime = Depends(get_runtime),
    translator: Translator = Depends(get_translator),
    language: str = Depends(get_language),
):
    return render_view(runtime.state, translator, language)


@router.get("/progress")
async def get_progress(runtime: ExerciseRuntime = Depends(get_runtime)):
    # raw persisted shape (camelCase), handy for debugging saved progress
    return runtime.state.record.model_dump(by_alias=True)


@router.post("/castle", response_model=ExerciseView)
async def click_castle(
    runtime: ExerciseRuntime = Depends(get_runtime),
    translator: Translator = Depends(get_translator),
    language: str = Depends(get_language),
):
    return render_view(runtime.click_castle(), translator, language)


@router.post("/answer", response_model=ExerciseView)
async def submit_answer(
    req: AnswerRequest,
    runtime: ExerciseRuntime = Depends(get_runtime),
    translator: Translator = Depends(get_translator),
    language: str = Depends(get_language),
):
    return render_view(runtime.submit(req.answer), translator, language)


@router.post("/continue", response_model=ExerciseView)
async def continue_later(
    runtime: ExerciseRuntime = Depends(get_runtime),
    translator: Translator = Depends(get_translator),
    language: str = Depends(get_language),
):
    return render_view(runtime.close(), translator, language)


@router.post("/restart", response_model=ExerciseView)
async def restart(
    runtime: ExerciseRuntime = Depends(get_runtime),
    translator: Translator = Depends(get_translator),
    language: str = Depends(get_language),
):
    return render_view(runtime.restart(), translator, language)
