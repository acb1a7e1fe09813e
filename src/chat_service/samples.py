import json
from functools import lru_cache
from importlib import resources
from typing import Dict, List


@lru_cache(maxsize=1)
def load_sample_questions() -> Dict[str, List[str]]:
    text = resources.files(__package__).joinpath("tool_sample_questions.json").read_text(encoding="utf-8")
    return json.loads(text)


def get_sample_questions(tool_name: str) -> List[str]:
    """Canned example questions for a tool, matched on the exact tool name."""
    return list(load_sample_questions().get(tool_name, []))
