from pydantic import BaseModel, Field, model_validator
from typing import List, Optional, Any, Union
from enum import Enum
from roadmap.store.ordering import Direction

class EpicType(str, Enum):
    CONTENT = "content"
    TECH = "tech"
    INTEGRATION = "integration"
    DISTRIBUTION = "distribution"
    OPTIMIZATION = "optimization"
    MONETIZATION = "monetization"

class TaskType(str, Enum):
    PREP = "prep"
    DEV = "dev"
    LAUNCH = "launch"
    GROWTH = "growth"
    MILESTONE = "milestone"

class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"

EPIC_TYPES = frozenset(t.value for t in EpicType)
TASK_TYPES = frozenset(t.value for t in TaskType)
TASK_STATUSES = frozenset(s.value for s in TaskStatus)

# Status cycle used by the "click to advance" interaction.
STATUS_CYCLE = [TaskStatus.PENDING.value, TaskStatus.IN_PROGRESS.value, TaskStatus.DONE.value]

class Project(BaseModel):
    id: str
    name: str
    description: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

class Task(BaseModel):
    id: str
    epic_id: str
    name: str
    description: str = ""
    owner: str = ""
    start_month: float
    duration: float
    type: TaskType = TaskType.PREP
    status: TaskStatus = TaskStatus.PENDING
    order_index: Union[int, float]
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

class Epic(BaseModel):
    id: str
    project_id: str
    name: str
    description: str = ""
    type: EpicType = EpicType.CONTENT
    start_month: float
    duration: float
    order_index: Union[int, float]
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

class EpicWithTasks(Epic):
    tasks: List[Task] = []

class Snapshot(BaseModel):
    """The whole persisted document: one project, its epics and their tasks."""
    project: Project
    epics: List[Epic]
    tasks: List[Task]

# === Inputs ===

class EpicCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    type: EpicType = EpicType.CONTENT
    start_month: float = Field(0, ge=0)
    duration: float = Field(3, gt=0)
    order_index: Optional[int] = None

class EpicUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    type: Optional[EpicType] = None
    start_month: Optional[float] = Field(None, ge=0)
    duration: Optional[float] = Field(None, gt=0)
    order_index: Optional[int] = None

class TaskCreate(BaseModel):
    epic_id: str
    name: str = Field(..., min_length=1)
    description: str = ""
    owner: str = ""
    start_month: Optional[float] = Field(None, ge=0)
    duration: float = Field(1, gt=0)
    type: TaskType = TaskType.PREP
    status: TaskStatus = TaskStatus.PENDING
    order_index: Optional[int] = None

class TaskUpdate(BaseModel):
    epic_id: Optional[str] = None
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    owner: Optional[str] = None
    start_month: Optional[float] = Field(None, ge=0)
    duration: Optional[float] = Field(None, gt=0)
    type: Optional[TaskType] = None
    status: Optional[TaskStatus] = None
    order_index: Optional[int] = None

    @model_validator(mode='before')
    @classmethod
    def check_update_fields(cls, values: Any) -> Any:
        if isinstance(values, dict) and not any(v is not None for v in values.values()):
            raise ValueError("At least one field must be provided.")
        return values

class MoveInput(BaseModel):
    direction: Direction
