# models/cycle_schemas.py
from pydantic import BaseModel
from typing import Optional, List, Literal

CycleType = Literal[
    'antagonist', 'long-lupron', 'microdose-flare', 'mini-ivf', 'fresh',
    'frozen-medicated', 'frozen-modified-natural', 'frozen-natural', 'other'
]
CycleGoal = Literal['retrieval', 'transfer', 'iui']
CycleStatus = Literal['active', 'completed', 'cancelled']
VisitType = Literal['baseline', 'monitoring', 'retrieval', 'transfer', 'beta', 'iui', 'other']

class TransferEmbryo(BaseModel):
    embryoDay: Optional[int] = None
    embryoGrade: Optional[str] = None
    embryoStatus: Optional[str] = None
    pgtStatus: Optional[str] = None

class LegacyMedication(BaseModel):
    """Medication stored inline on a cycle day"""
    id: Optional[str] = None
    name: str
    dosage: str = ''
    time: Optional[str] = None
    taken: bool = False
    trigger: Optional[bool] = None
    refrigerated: Optional[bool] = None

class ClinicVisit(BaseModel):
    type: VisitType
    notes: Optional[str] = None
    betaHcgValue: Optional[float] = None
    betaHcgUnit: Optional[str] = None

class FollicleSizes(BaseModel):
    left: List[float] = []
    right: List[float] = []
    liningThickness: Optional[float] = None

class BloodworkResult(BaseModel):
    test: str
    value: str
    unit: Optional[str] = None

class CycleDayCreate(BaseModel):
    cycleDay: Optional[int] = None
    date: Optional[str] = None
    medications: Optional[List[LegacyMedication]] = None
    clinicVisit: Optional[ClinicVisit] = None
    follicleSizes: Optional[FollicleSizes] = None
    bloodwork: Optional[List[BloodworkResult]] = None
    notes: Optional[str] = None

class CycleDayUpdate(CycleDayCreate):
    pass

class CycleOutcome(BaseModel):
    # Retrieval
    eggsRetrieved: Optional[int] = None
    matureEggs: Optional[int] = None
    fertilizationMethod: Optional[str] = None
    fertilized: Optional[int] = None
    day3Embryos: Optional[int] = None
    blastocysts: Optional[int] = None
    euploidBlastocysts: Optional[int] = None
    frozen: Optional[int] = None
    embryosAvailableForTransfer: Optional[int] = None
    embryosTested: Optional[int] = None

    # Transfer
    betaHcg1: Optional[float] = None
    betaHcg1Day: Optional[int] = None
    betaHcg2: Optional[float] = None
    betaHcg2Day: Optional[int] = None
    transferStatus: Optional[Literal['successful', 'not-successful']] = None
    liveBirth: Optional[Literal['yes', 'no']] = None
    notes: Optional[str] = None

class CycleCosts(BaseModel):
    cycleCost: Optional[float] = None
    pgtCost: Optional[float] = None
    medicationsCost: Optional[float] = None
    storageCost: Optional[float] = None
    insuranceCoverage: Optional[float] = None

class CycleCreate(BaseModel):
    name: str
    startDate: str
    endDate: Optional[str] = None
    dateOfBirth: Optional[str] = None
    ageAtStart: Optional[int] = None
    cycleType: CycleType
    cycleGoal: CycleGoal
    donorEggs: Optional[Literal['donor', 'own']] = None
    numberOfEmbryos: Optional[int] = None
    embryos: Optional[List[TransferEmbryo]] = None
    status: CycleStatus = 'active'
    days: Optional[List[CycleDayCreate]] = None
    outcome: Optional[CycleOutcome] = None
    costs: Optional[CycleCosts] = None

class CycleUpdate(BaseModel):
    name: Optional[str] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    dateOfBirth: Optional[str] = None
    ageAtStart: Optional[int] = None
    cycleType: Optional[CycleType] = None
    cycleGoal: Optional[CycleGoal] = None
    donorEggs: Optional[Literal['donor', 'own']] = None
    numberOfEmbryos: Optional[int] = None
    embryos: Optional[List[TransferEmbryo]] = None
    status: Optional[CycleStatus] = None

class ComparedCycle(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    startDate: str
    cycleType: Optional[CycleType] = None
    cycleGoal: CycleGoal
    outcome: Optional[CycleOutcome] = None

class CycleComparisonRequest(BaseModel):
    """Another user's cycles to compare against the active user's"""
    metric: str
    theirCycles: List[ComparedCycle]
