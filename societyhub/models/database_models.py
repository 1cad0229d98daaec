from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

# Field names follow the stored documents (camelCase), every model carries the
# store-assigned id.

# Visitor Model
class Visitor(BaseModel):
    id: Optional[str] = None
    name: str
    purpose: str
    flatNumber: str
    vehicleNumber: Optional[str] = None
    status: str = Field(default="pending")  # pending, approved, checked_in, checked_out, denied
    submittedBy: Optional[str] = None  # resident uid
    visitDate: Optional[str] = None  # YYYY-MM-DD
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

# Complaint Model
class Complaint(BaseModel):
    id: Optional[str] = None
    title: str
    description: str
    category: str
    priority: str
    status: str = Field(default="pending")  # pending, in_progress, resolved
    submittedBy: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

# Maintenance bill (one per resident per month)
class Payment(BaseModel):
    id: Optional[str] = None
    month: str  # "Jun 2025"
    amount: float
    status: str = Field(default="Unpaid")  # Paid, Unpaid
    due: Optional[str] = None  # due date, YYYY-MM-DD
    date: Optional[str] = None  # payment date once paid
    userId: Optional[str] = None

class PollVote(BaseModel):
    userId: str

class PollOption(BaseModel):
    text: str
    votes: List[PollVote] = []

class Poll(BaseModel):
    id: Optional[str] = None
    question: str
    options: List[PollOption] = []
    expiresAt: Optional[datetime] = None
    createdBy: Optional[str] = None
    createdAt: Optional[datetime] = None

# Society document (certificates, NOCs, insurance papers, ...)
class SocietyDocument(BaseModel):
    id: Optional[str] = None
    title: str
    category: Optional[str] = None
    fileUrl: Optional[str] = None
    expiryDate: Optional[str] = None  # YYYY-MM-DD
    archived: bool = Field(default=False)
    submittedBy: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
