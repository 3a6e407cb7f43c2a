import re
from dataclasses import asdict, dataclass, field
from typing import Dict, List

STEP_PATTERN = re.compile(
    r"Step \d+:([^|]+)\|?\s*Hint:([^|]+)\|?\s*Answer:([^\n]+)",
    re.IGNORECASE,
)

FALLBACK_MAX_STEPS = 4
FALLBACK_HINT = "Think about the mathematical principles involved."
FALLBACK_ANSWER = "Check your work carefully"

PARSE_OK = "ok"
PARSE_FALLBACK = "fallback"


@dataclass(frozen=True)
class Step:
    instruction: str
    hint: str
    answer: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class StepParseResult:
    """
    Steps extracted from one solution text.

    kind is "ok" when the text followed the
    ``Step n: ... | Hint: ... | Answer: ...`` format and "fallback" when the
    steps are placeholders built from the first lines of the text.
    """

    kind: str
    steps: List[Step] = field(default_factory=list)

    @property
    def is_fallback(self) -> bool:
        return self.kind == PARSE_FALLBACK

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)


def _fallback_steps(text: str) -> List[Step]:
    lines = [line for line in text.split("\n") if line.strip()]
    return [
        Step(instruction=line, hint=FALLBACK_HINT, answer=FALLBACK_ANSWER)
        for line in lines[:FALLBACK_MAX_STEPS]
    ]


def parse_steps(text: str) -> StepParseResult:
    steps = [
        Step(
            instruction=m.group(1).strip(),
            hint=m.group(2).strip(),
            answer=m.group(3).strip(),
        )
        for m in STEP_PATTERN.finditer(text or "")
    ]

    # only the match count decides; empty captured fields still count as steps
    if steps:
        return StepParseResult(kind=PARSE_OK, steps=steps)

    return StepParseResult(kind=PARSE_FALLBACK, steps=_fallback_steps(text or ""))
