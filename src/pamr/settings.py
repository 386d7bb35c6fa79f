"""
PAMr settings: databases, binary files and processing functions.

PamrSettings is an immutable value. Every operation that changes settings
takes the current value and returns a new one:

    settings = PamrSettings()
    settings = add_database(settings, "survey.sqlite3")
    settings = add_binaries(settings, "Binaries/")
    settings = add_function(settings, ModuleType.CLICK_DETECTOR, "peak", peak_freq)
"""

import logging

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pamr.constants import BINARY_FILE_SUFFIX, ModuleType

logger = logging.getLogger(__name__)

ProcessingFunction = Callable[..., Any]
FunctionRegistry = dict[ModuleType, dict[str, ProcessingFunction]]


def _empty_registry() -> FunctionRegistry:
    return {module: {} for module in ModuleType}


def _complete_registry(value: Any) -> FunctionRegistry:
    registry = _empty_registry()
    for module, functions in dict(value or {}).items():
        registry[ModuleType(module)] = dict(functions)
    return registry


class BinaryInventory(BaseModel):
    """Binary folders and the binary files found in them."""

    model_config = ConfigDict(frozen=True)

    folders: tuple[str, ...] = Field(default=(), description="Binary folders")
    files: tuple[str, ...] = Field(default=(), description="Full binary file paths")


class PamrSettings(BaseModel):
    """Databases, binaries and processing functions used to load detections."""

    model_config = ConfigDict(frozen=True)

    db: tuple[str, ...] = Field(default=(), description="Database paths")
    binaries: BinaryInventory = Field(default_factory=BinaryInventory)
    functions: FunctionRegistry = Field(
        default_factory=_empty_registry,
        description="Processing functions by module type and name",
    )
    calibration: FunctionRegistry = Field(
        default_factory=_empty_registry,
        description="Calibration functions by module type and name",
    )

    @field_validator("functions", "calibration", mode="before")
    @classmethod
    def fill_module_types(cls, value: Any) -> FunctionRegistry:
        """Every module type always has an entry, possibly empty."""
        return _complete_registry(value)

    def summary(self) -> str:
        """Human-readable description of these settings."""
        lines = ["PamrSettings object with:", f"{len(self.db)} database(s)"]
        lines.extend(f"  {Path(db).name}" for db in self.db)

        n_folders = len(self.binaries.folders)
        if n_folders:
            lines.append(
                f"{n_folders} binary folder(s) containing {len(self.binaries.files)} binary files"
            )
        else:
            lines.append("0 binary folder(s)")

        for module, functions in self.functions.items():
            lines.append(
                f'{len(functions)} function(s) for module type "{module.value}"'
            )
            lines.extend(f'  "{name}"' for name in functions)

        n_cal = sum(len(functions) for functions in self.calibration.values())
        lines.append(f"{n_cal} calibration function(s)")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()


def add_database(settings: PamrSettings, db: str | Path | Iterable[str | Path]) -> PamrSettings:
    """
    Add one or more databases to the settings.

    Databases are appended as given; adding the same path twice lists it twice.

    Args:
        settings: Current settings
        db: Database path or paths

    Returns:
        New settings with the databases appended

    Raises:
        FileNotFoundError: If any of the databases does not exist. Settings
            are left unchanged.
    """
    paths = [db] if isinstance(db, (str, Path)) else list(db)
    if not paths:
        return settings

    missing = [str(path) for path in paths if not Path(path).exists()]
    if missing:
        raise FileNotFoundError(
            "Database(s) do not exist: " + ", ".join(missing)
        )

    return settings.model_copy(
        update={"db": settings.db + tuple(str(path) for path in paths)}
    )


def add_binaries(
    settings: PamrSettings, folder: str | Path, pattern: str = f"*{BINARY_FILE_SUFFIX}"
) -> PamrSettings:
    """
    Add a folder of binary files to the settings.

    The folder is searched recursively for files matching the pattern.

    Raises:
        FileNotFoundError: If the folder does not exist
    """
    folder_path = Path(folder)
    if not folder_path.is_dir():
        raise FileNotFoundError(f"Binary folder does not exist: {folder}")

    found = sorted(str(path) for path in folder_path.rglob(pattern) if path.is_file())
    if not found:
        logger.warning(f"No binary files matching {pattern} found in {folder}")
    else:
        logger.info(f"Found {len(found)} binary file(s) in {folder}")

    inventory = BinaryInventory(
        folders=settings.binaries.folders + (str(folder_path),),
        files=settings.binaries.files + tuple(found),
    )
    return settings.model_copy(update={"binaries": inventory})


def _with_registry_entry(
    registry: FunctionRegistry,
    module: ModuleType | str,
    name: str,
    func: ProcessingFunction | None,
) -> FunctionRegistry:
    updated = {key: dict(value) for key, value in registry.items()}
    entry = updated[ModuleType(module)]
    if func is None:
        entry.pop(name, None)
    else:
        entry[name] = func
    return updated


def add_function(
    settings: PamrSettings,
    module: ModuleType | str,
    name: str,
    func: ProcessingFunction,
) -> PamrSettings:
    """
    Register a processing function for a module type.

    The function is called once per decoded record and must return a mapping
    of measurement names to values, or a list of such mappings.

    Raises:
        ValueError: If the module type is not recognized
        TypeError: If func is not callable
    """
    if not callable(func):
        raise TypeError(f"Processing function '{name}' is not callable")
    module = ModuleType(module)
    if name in settings.functions[module]:
        logger.info(f"Replacing function '{name}' for module type {module.value}")
    return settings.model_copy(
        update={"functions": _with_registry_entry(settings.functions, module, name, func)}
    )


def remove_function(
    settings: PamrSettings, module: ModuleType | str, name: str
) -> PamrSettings:
    """Remove a processing function; missing names are ignored."""
    return settings.model_copy(
        update={"functions": _with_registry_entry(settings.functions, module, name, None)}
    )


def add_calibration(
    settings: PamrSettings,
    module: ModuleType | str,
    name: str,
    func: ProcessingFunction,
) -> PamrSettings:
    """Register a named calibration function for a module type."""
    if not callable(func):
        raise TypeError(f"Calibration function '{name}' is not callable")
    return settings.model_copy(
        update={
            "calibration": _with_registry_entry(settings.calibration, module, name, func)
        }
    )
