# config.py
# Runtime settings resolved from the environment. A .env file in the working
# directory is loaded first; variables already set in the environment win.

import os

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_DATA_DIR = ".connectonion"
DEFAULT_MAX_ITERATIONS = 10


class Settings(BaseModel):
    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    data_dir: str = DEFAULT_DATA_DIR
    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, ge=1)

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "Settings":
        load_dotenv(dotenv_path or find_dotenv(usecwd=True), override=False)
        return cls(
            api_key=os.getenv("OPENAI_API_KEY") or None,
            base_url=os.getenv("OPENAI_BASE_URL") or DEFAULT_BASE_URL,
            model=os.getenv("OPENAI_MODEL") or DEFAULT_MODEL,
            data_dir=os.getenv("AGENT_LOOP_DATA_DIR") or DEFAULT_DATA_DIR,
            max_iterations=os.getenv("AGENT_LOOP_MAX_ITERATIONS") or DEFAULT_MAX_ITERATIONS,
        )
