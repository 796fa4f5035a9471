from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header, Query

from coordinator import AsyncioScheduler, ExerciseRuntime
from exercise_state import StateStore
from i18n import Translator, load_language_preference, resolve_language
from storage import KeyValueStorage


@lru_cache
def get_storage() -> KeyValueStorage:
    return KeyValueStorage()


@lru_cache
def get_translator() -> Translator:
    return Translator()


@lru_cache
def get_runtime() -> ExerciseRuntime:
    # one learner, one live exercise per process
    return ExerciseRuntime(StateStore(get_storage()), AsyncioScheduler())


async def get_language(
    lang: Optional[str] = Query(default=None, description="Language code, e.g. 'sv'"),
    accept_language: Annotated[str | None, Header(alias="accept-language")] = None,
    storage: KeyValueStorage = Depends(get_storage),
    translator: Translator = Depends(get_translator),
) -> str:
    language = resolve_language(
        saved=load_language_preference(storage),
        query=lang,
        accept_language=accept_language,
        supported=translator.languages(),
    )
    await translator.ready(language)
    return language
