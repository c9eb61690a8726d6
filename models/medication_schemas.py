# models/medication_schemas.py
from pydantic import BaseModel
from typing import Optional, List, Literal

class ScheduledMedicationCreate(BaseModel):
    id: Optional[str] = None
    name: str
    dosage: str = ''
    hour: Optional[str] = None
    minute: Optional[str] = None
    ampm: Optional[Literal['AM', 'PM']] = None
    time: Optional[str] = None
    refrigerated: bool = False
    trigger: bool = False
    startDay: int
    endDay: int
    notes: Optional[str] = None

class ScheduledMedicationUpdate(BaseModel):
    name: Optional[str] = None
    dosage: Optional[str] = None
    hour: Optional[str] = None
    minute: Optional[str] = None
    ampm: Optional[Literal['AM', 'PM']] = None
    time: Optional[str] = None
    refrigerated: Optional[bool] = None
    trigger: Optional[bool] = None
    startDay: Optional[int] = None
    endDay: Optional[int] = None
    notes: Optional[str] = None

class MedicationScheduleSave(BaseModel):
    medications: List[ScheduledMedicationCreate]

class DaySpecificMedicationCreate(BaseModel):
    name: str
    dosage: str = ''
    hour: Optional[str] = None
    minute: Optional[str] = None
    ampm: Optional[Literal['AM', 'PM']] = None
    time: Optional[str] = None
    refrigerated: bool = False
    trigger: bool = False
    notes: Optional[str] = None

class DaySpecificMedicationUpdate(BaseModel):
    name: Optional[str] = None
    dosage: Optional[str] = None
    hour: Optional[str] = None
    minute: Optional[str] = None
    ampm: Optional[Literal['AM', 'PM']] = None
    time: Optional[str] = None
    refrigerated: Optional[bool] = None
    trigger: Optional[bool] = None
    notes: Optional[str] = None

class MedicationStatusAction(BaseModel):
    """
    Body for a status transition. `value` carries the taken-at timestamp for
    "taken" (optional) and "taken-time", the dosage for "dosage" and the text
    for "notes".
    """
    action: Literal['taken', 'skipped', 'reset', 'taken-time', 'dosage', 'notes']
    value: Optional[str] = None

class FlatMedicationCreate(BaseModel):
    cycleDay: int
    name: str
    dosage: str = ''
    time: str = ''
    refrigerated: bool = False
    type: Literal['scheduled', 'one-time'] = 'one-time'
    startDay: Optional[int] = None
    endDay: Optional[int] = None
    notes: Optional[str] = None

class FlatMedicationUpdate(BaseModel):
    cycleDay: Optional[int] = None
    name: Optional[str] = None
    dosage: Optional[str] = None
    time: Optional[str] = None
    refrigerated: Optional[bool] = None
    type: Optional[Literal['scheduled', 'one-time']] = None
    startDay: Optional[int] = None
    endDay: Optional[int] = None
    taken: Optional[bool] = None
    skipped: Optional[bool] = None
    takenAt: Optional[str] = None
    notes: Optional[str] = None

class TemplateApply(BaseModel):
    template: str

class MigrationOptions(BaseModel):
    preserveTimestamps: bool = True
    skipIncompleteData: bool = False
