"""Last-used product form defaults, remembered on this device."""
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, ValidationError as PydanticValidationError

from weekshop.config.settings import get_settings
from weekshop.utils.logger import get_logger

_UNSET = object()


class FormPreferencesData(BaseModel):
    last_location_id: Optional[str] = None
    last_sequence: Optional[int] = None


class FormPreferences:
    """Best-effort JSON store for the product form defaults.

    Nothing here is needed for correctness: unreadable or unwritable files are
    logged and treated as empty.
    """

    def __init__(self, path=_UNSET):
        self.path: Optional[Path] = get_settings().PREFERENCES_FILE if path is _UNSET else path
        self.logger = get_logger(self.__class__.__name__)
        self._memory = FormPreferencesData()

    def load(self) -> FormPreferencesData:
        if self.path is None:
            return self._memory.model_copy()
        try:
            if not self.path.exists():
                return FormPreferencesData()
            return FormPreferencesData.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, PydanticValidationError) as e:
            self.logger.warning("Ignoring unreadable form preferences", path=str(self.path), error=str(e))
            return FormPreferencesData()

    def save(self, data: FormPreferencesData) -> None:
        self._memory = data.model_copy()
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(data.model_dump_json(), encoding="utf-8")
        except OSError as e:
            self.logger.warning("Could not save form preferences", path=str(self.path), error=str(e))

    def remember(self, location_id: Optional[str] = None, sequence: Optional[int] = None) -> FormPreferencesData:
        """Store whichever of the two values are given."""
        data = self.load()
        if location_id is not None:
            data.last_location_id = location_id
        if sequence is not None:
            data.last_sequence = sequence
        self.save(data)
        return data
