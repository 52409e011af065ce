from .scripts import (
    CandleIn,
    ScriptCreate,
    ScriptInputsUpdate,
    ScriptLoadRequest,
    ScriptOutputRead,
    ScriptParseRequest,
    ScriptParseResult,
    ScriptRead,
    ScriptRunRequest,
    ScriptSourceUpdate,
)

__all__ = [
    "CandleIn",
    "ScriptCreate",
    "ScriptInputsUpdate",
    "ScriptLoadRequest",
    "ScriptOutputRead",
    "ScriptParseRequest",
    "ScriptParseResult",
    "ScriptRead",
    "ScriptRunRequest",
    "ScriptSourceUpdate",
]
