from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from barscript.services.candle_buffer import CandleSeries
from barscript.services.script_engine import ScriptEngine
from barscript.services.script_output import ScriptOutput

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".bs"


@dataclass
class ActiveScript:
    name: str
    source: str
    enabled: bool = True
    engine: ScriptEngine = field(default_factory=ScriptEngine, repr=False)
    input_values: Dict[str, float] = field(default_factory=dict)
    last_output: Optional[ScriptOutput] = None
    file_path: Optional[Path] = None


class ScriptManager:
    """Ordered collection of scripts evaluated together on every candle update.

    Positions are list indexes; an invalid position raises ``IndexError``.
    Not thread-safe: callers sharing a manager must serialise access.
    """

    def __init__(self, extension: str = DEFAULT_EXTENSION) -> None:
        self._scripts: List[ActiveScript] = []
        self._outputs: List[ScriptOutput] = []
        self.extension = extension

    @property
    def scripts(self) -> List[ActiveScript]:
        return list(self._scripts)

    @property
    def outputs(self) -> List[ScriptOutput]:
        return list(self._outputs)

    def __len__(self) -> int:
        return len(self._scripts)

    def _get(self, index: int) -> ActiveScript:
        if index < 0 or index >= len(self._scripts):
            raise IndexError(f"No script at position {index}")
        return self._scripts[index]

    def add_script(self, source: str, name: str = "") -> ActiveScript:
        script = ActiveScript(
            name=name or f"Script {len(self._scripts) + 1}",
            source=source,
        )
        self._scripts.append(script)
        logger.info(
            "Script added",
            extra={"extra": {"script": script.name, "position": len(self._scripts) - 1}},
        )
        return script

    def remove_script(self, index: int) -> ActiveScript:
        self._get(index)
        script = self._scripts.pop(index)
        logger.info("Script removed", extra={"extra": {"script": script.name}})
        return script

    def toggle_script(self, index: int) -> bool:
        script = self._get(index)
        script.enabled = not script.enabled
        return script.enabled

    def update_source(self, index: int, source: str) -> None:
        self._get(index).source = source

    def set_input(self, index: int, name: str, value: float) -> None:
        self._get(index).input_values[name] = float(value)

    def execute_all(self, buffer: CandleSeries) -> List[ScriptOutput]:
        """Run every script against ``buffer``; one output per script, in order."""

        results: List[ScriptOutput] = []
        for script in self._scripts:
            if not script.enabled:
                output = ScriptOutput.failed("Disabled", title=script.name)
            else:
                output = script.engine.run(script.source, buffer, script.input_values)
                # Newly declared inputs start at their script default.
                for item in output.inputs:
                    script.input_values.setdefault(item.name, item.default)
            script.last_output = output
            results.append(output)

        self._outputs = results
        return list(results)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load_script(self, path: str | Path) -> ActiveScript:
        file_path = Path(path)
        source = file_path.read_text(encoding="utf-8")
        script = self.add_script(source, file_path.stem)
        script.file_path = file_path
        return script

    def save_script(self, index: int, path: str | Path | None = None) -> Path:
        script = self._get(index)
        target = Path(path) if path is not None else script.file_path
        if target is None:
            raise ValueError(f"Script '{script.name}' has no file path")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(script.source, encoding="utf-8")
        script.file_path = target
        logger.info(
            "Script saved",
            extra={"extra": {"script": script.name, "path": str(target)}},
        )
        return target

    def load_directory(self, path: str | Path) -> List[ActiveScript]:
        """Load every script file in ``path`` (non-recursive), sorted by name."""

        directory = Path(path)
        if not directory.is_dir():
            logger.warning(
                "Scripts directory not found",
                extra={"extra": {"path": str(directory)}},
            )
            return []

        files = sorted(
            p for p in directory.iterdir() if p.is_file() and p.suffix == self.extension
        )
        return [self.load_script(p) for p in files]


__all__ = ["ActiveScript", "ScriptManager"]
