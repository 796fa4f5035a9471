# routers/language.py
from fastapi import APIRouter, Depends, HTTPException, Query

from deps.exercise import get_language, get_storage, get_translator
from i18n import DEFAULT_LANGUAGE, Translator, normalize_language, save_language_preference
from schemas.views import LanguageRequest, LanguagesOut, TranslationOut
from storage import KeyValueStorage

router = APIRouter(prefix="/i18n", tags=["i18n"])


@router.get("/languages", response_model=LanguagesOut)
async def list_languages(
    translator: Translator = Depends(get_translator),
    language: str = Depends(get_language),
):
    return {
        "ok": True,
        "default": DEFAULT_LANGUAGE,
        "current": language,
        "languages": translator.languages(),
    }


@router.put("/language")
async def set_language(
    req: LanguageRequest,
    storage: KeyValueStorage = Depends(get_storage),
    translator: Translator = Depends(get_translator),
):
    lang = normalize_language(req.language)
    if lang not in translator.languages():
        raise HTTPException(status_code=400, detail=f"unsupported language: {req.language}")
    if not save_language_preference(storage, lang):
        return {"ok": False, "error": "could not save language preference"}
    return {"ok": True, "language": lang}


@router.get("/translate", response_model=TranslationOut)
async def translate(
    key: str = Query(..., min_length=1),
    translator: Translator = Depends(get_translator),
    language: str = Depends(get_language),
):
    return {"key": key, "language": language, "text": translator.translate(key, language=language)}
