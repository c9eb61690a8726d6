# models/record_schemas.py
from pydantic import BaseModel
from typing import Optional, List, Literal

class ProcedureCreate(BaseModel):
    procedureType: str
    customProcedureName: Optional[str] = None
    procedureDate: str
    clinicName: Optional[str] = None
    notes: Optional[str] = None
    results: Optional[str] = None
    cost: Optional[float] = None
    insuranceCoverage: Optional[float] = None

class ProcedureUpdate(BaseModel):
    procedureType: Optional[str] = None
    customProcedureName: Optional[str] = None
    procedureDate: Optional[str] = None
    clinicName: Optional[str] = None
    notes: Optional[str] = None
    results: Optional[str] = None
    cost: Optional[float] = None
    insuranceCoverage: Optional[float] = None

PregnancyOutcome = Literal['ongoing', 'live-birth', 'miscarriage', 'medical-termination']

class NaturalPregnancyCreate(BaseModel):
    dateOfConception: str
    ageAtConception: Optional[int] = None
    dueDateOrBirthDate: str
    isDateOfBirth: bool = False
    pregnancyOutcome: Optional[PregnancyOutcome] = None
    outcomeDate: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None

class NaturalPregnancyUpdate(BaseModel):
    dateOfConception: Optional[str] = None
    ageAtConception: Optional[int] = None
    dueDateOrBirthDate: Optional[str] = None
    isDateOfBirth: Optional[bool] = None
    pregnancyOutcome: Optional[PregnancyOutcome] = None
    outcomeDate: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None

class UserProfileSave(BaseModel):
    location: Optional[str] = None
    dateOfBirth: str
    ivfReasons: List[str] = []
    ivfReasonOther: Optional[str] = None
    livingChildren: int = 0
    childrenFromIVF: Optional[bool] = None
    numberOfIVFChildren: Optional[int] = None
    regularPeriods: Optional[bool] = None
    menstrualCycleDays: Optional[int] = None

class DatePreferenceSave(BaseModel):
    dateType: Literal['startDate', 'endDate', 'dateOfBirth', 'clinicVisitDate', 'dayDate']
    date: str
