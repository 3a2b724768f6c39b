"""
Request Schemas

One Pydantic model per endpoint body or query string. Handlers call
``parse_body``/``parse_args`` before any domain logic runs; a failed
validation becomes a ``ValidationFailed`` error with per-field details.
Field names follow the camelCase keys of the JSON API.
"""

from datetime import date, datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional

from flask import request
from pydantic import AfterValidator, BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import ValidationFailed
from .models import announcement, dining, maintenance, menu, order, outpass


def _naive_utc(value):
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


ObjectIdStr = Annotated[str, Field(pattern=r'^[0-9a-fA-F]{24}$')]
HHMM = Annotated[str, Field(pattern=r'^([01]\d|2[0-3]):[0-5]\d$')]
Phone = Annotated[str, Field(pattern=r'^\+?\d{10,13}$')]
Timestamp = Annotated[datetime, AfterValidator(_naive_utc)]
Score = Annotated[int, Field(ge=1, le=5)]

EMAIL_PATTERN = r'^[\w\.-]+@[\w\.-]+\.\w{2,}$'


def error_details(exc):
    return [
        {'field': '.'.join(str(part) for part in err['loc']) or 'body', 'message': err['msg']}
        for err in exc.errors()
    ]


def validate(model, data):
    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        raise ValidationFailed('Validation failed', details=error_details(e))


def parse_body(model):
    return validate(model, request.get_json(silent=True))


def parse_args(model):
    return validate(model, request.args.to_dict())


class Page(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)


# ==================== AUTH ====================

class StudentProfile(BaseModel):
    hostelBlock: Optional[str] = None
    floor: Optional[int] = Field(None, ge=0)
    roomNumber: Optional[str] = None


class Register(BaseModel):
    identifier: str = Field(..., min_length=1, description="Roll number or employee id")
    name: str = Field(..., min_length=2)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)
    phone: Phone
    profile: Optional[StudentProfile] = None

    @field_validator('identifier')
    @classmethod
    def upper_identifier(cls, value):
        return value.strip().upper()


class Login(BaseModel):
    identifier: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6)


class CreateUser(Register):
    role: Literal['student', 'warden', 'canteen_owner', 'admin']


class UpdateProfile(BaseModel):
    name: Optional[str] = Field(None, min_length=2)
    phone: Optional[Phone] = None
    profile: Optional[StudentProfile] = None


class ChangePassword(BaseModel):
    currentPassword: str = Field(..., min_length=1)
    newPassword: str = Field(..., min_length=6)


# ==================== CANTEEN ====================

class Category(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    icon: Optional[str] = Field(None, max_length=10)
    displayOrder: int = Field(0, ge=0)


class ScheduleDay(BaseModel):
    start: HHMM = '00:00'
    end: HHMM = '23:59'
    available: bool = True


class MenuItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = Field(None, max_length=1000)
    category: ObjectIdStr
    price: float = Field(..., ge=0)
    originalPrice: Optional[float] = Field(None, ge=0)
    image: Optional[Dict[str, Any]] = None
    ingredients: List[str] = []
    allergens: List[Literal[menu.ALLERGENS]] = []
    nutritionInfo: Dict[str, float] = {}
    tags: List[Literal[menu.TAGS]] = []
    preparationTime: int = Field(15, ge=1)
    isAvailable: bool = True
    availabilitySchedule: Optional[Dict[Literal[menu.WEEKDAYS], ScheduleDay]] = None
    stock: int = Field(menu.UNLIMITED_STOCK, ge=menu.UNLIMITED_STOCK)


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = Field(None, max_length=1000)
    category: Optional[ObjectIdStr] = None
    price: Optional[float] = Field(None, ge=0)
    originalPrice: Optional[float] = Field(None, ge=0)
    image: Optional[Dict[str, Any]] = None
    ingredients: Optional[List[str]] = None
    allergens: Optional[List[Literal[menu.ALLERGENS]]] = None
    nutritionInfo: Optional[Dict[str, float]] = None
    tags: Optional[List[Literal[menu.TAGS]]] = None
    preparationTime: Optional[int] = Field(None, ge=1)
    isAvailable: Optional[bool] = None
    availabilitySchedule: Optional[Dict[Literal[menu.WEEKDAYS], ScheduleDay]] = None
    stock: Optional[int] = Field(None, ge=menu.UNLIMITED_STOCK)


class MenuQuery(Page):
    category: Optional[ObjectIdStr] = None
    search: Optional[str] = None
    tags: List[str] = []
    minPrice: Optional[float] = Field(None, ge=0)
    maxPrice: Optional[float] = Field(None, ge=0)
    sortBy: Literal[tuple(menu.SORT_OPTIONS)] = 'name'
    includeOutOfStock: bool = False

    @field_validator('tags', mode='before')
    @classmethod
    def split_tags(cls, value):
        if isinstance(value, str):
            return [tag.strip() for tag in value.split(',') if tag.strip()]
        return value


class Limit(BaseModel):
    limit: int = Field(10, ge=1, le=50)


class Rating(BaseModel):
    rating: Score


# ==================== CART & ORDERS ====================

class AddToCart(BaseModel):
    menuItemId: ObjectIdStr
    quantity: int = Field(..., ge=1)
    specialInstructions: Optional[str] = Field(None, max_length=200)


class UpdateCart(BaseModel):
    menuItemId: ObjectIdStr
    quantity: int = Field(..., ge=0)


class DeliveryAddress(BaseModel):
    hostelBlock: str = Field(..., min_length=1)
    roomNumber: str = Field(..., min_length=1)
    floor: int = Field(..., ge=0)
    landmark: Optional[str] = None
    contactNumber: Phone


class PlaceOrder(BaseModel):
    deliveryAddress: DeliveryAddress
    paymentMethod: Literal[order.PAYMENT_METHODS]
    deliveryInstructions: Optional[str] = Field(None, max_length=500)


class OrderQuery(Page):
    limit: int = Field(10, ge=1, le=50)
    status: Optional[Literal[order.STATUSES]] = None


class OrderStatus(BaseModel):
    status: Literal[order.STATUSES]
    notes: Optional[str] = Field(None, max_length=500)


class CancelOrder(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class OrderRating(BaseModel):
    food: float = Field(..., ge=1, le=5)
    delivery: float = Field(..., ge=1, le=5)
    overall: float = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class OrderStatsQuery(BaseModel):
    dateFrom: Optional[Timestamp] = None
    dateTo: Optional[Timestamp] = None
    status: Optional[Literal[order.STATUSES]] = None


# ==================== MAINTENANCE ====================

class RoomLocation(BaseModel):
    building: str = Field(..., min_length=1)
    floor: int = Field(..., ge=0)
    roomNumber: str = Field(..., min_length=1)
    specificLocation: Optional[str] = None


class MaintenanceRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)
    category: Literal[maintenance.CATEGORIES]
    priority: Literal[maintenance.PRIORITIES] = 'medium'
    location: RoomLocation
    photos: List[Dict[str, Any]] = []
    isEmergency: bool = False
    contactNumber: Optional[Phone] = None
    preferredTimeSlot: Literal[maintenance.TIME_SLOTS] = 'anytime'


class MaintenanceQuery(Page):
    status: Optional[Literal[maintenance.STATUSES]] = None
    category: Optional[Literal[maintenance.CATEGORIES]] = None
    priority: Optional[Literal[maintenance.PRIORITIES]] = None
    building: Optional[str] = None


class MaintenanceStatus(BaseModel):
    status: Literal[maintenance.STATUSES]
    notes: Optional[str] = Field(None, max_length=500)
    resolutionNotes: Optional[str] = Field(None, max_length=1000)
    expectedCompletionDate: Optional[Timestamp] = None
    actualCost: Optional[float] = Field(None, ge=0)


class Assign(BaseModel):
    assignedTo: ObjectIdStr


class MaintenanceRating(BaseModel):
    rating: Score
    feedback: Optional[str] = Field(None, max_length=500)


class Cancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


# ==================== OUTPASS ====================

class Destination(BaseModel):
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    pincode: Optional[str] = None


class LeaveContact(BaseModel):
    primaryNumber: Phone
    alternateNumber: Optional[Phone] = None


class EmergencyContact(BaseModel):
    name: str = Field(..., min_length=1)
    relationship: str = Field(..., min_length=1)
    phoneNumber: Phone


class ParentApproval(BaseModel):
    required: bool = False
    obtained: bool = False
    method: Optional[Literal['phone', 'email', 'letter', 'in_person']] = None


class SupportingDocument(BaseModel):
    type: Literal[outpass.DOCUMENT_TYPES] = 'other'
    filename: str
    path: str
    originalName: Optional[str] = None


class OutpassRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
    type: Literal[outpass.TYPES]
    outDate: date
    outTime: HHMM
    inDate: date
    inTime: HHMM
    destination: Destination
    contactDuringLeave: LeaveContact
    emergencyContact: EmergencyContact
    transportMode: Literal[outpass.TRANSPORT_MODES]
    vehicleDetails: Optional[str] = None
    parentApproval: Optional[ParentApproval] = None
    isEmergency: bool = False
    supportingDocuments: List[SupportingDocument] = []
    rulesAcknowledged: bool
    specialInstructions: Optional[str] = Field(None, max_length=500)


class OutpassQuery(Page):
    limit: int = Field(10, ge=1, le=50)
    status: Optional[Literal[outpass.STATUSES]] = None
    type: Optional[Literal[outpass.TYPES]] = None
    sortBy: Literal['createdAt', 'outDate', 'inDate', 'status'] = 'createdAt'
    sortOrder: Literal['asc', 'desc'] = 'desc'


class Review(BaseModel):
    status: Literal['approved', 'rejected']
    reviewNotes: Optional[str] = Field(None, max_length=500)


class Gate(BaseModel):
    location: Optional[str] = Field(None, max_length=200)


class OutpassStatsQuery(BaseModel):
    period: Literal['week', 'month', 'year'] = 'month'
    type: Optional[Literal[outpass.TYPES]] = None


# ==================== ANNOUNCEMENTS ====================

class EventDetails(BaseModel):
    startDate: Timestamp
    endDate: Optional[Timestamp] = None
    venue: Optional[str] = None
    organizer: Optional[str] = None
    maxParticipants: Optional[int] = Field(None, ge=1)
    registrationRequired: bool = False

    @model_validator(mode='after')
    def end_after_start(self):
        if self.endDate and self.endDate < self.startDate:
            raise ValueError('Event end date must be after start date')
        return self


class Announcement(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=10)
    category: Literal[announcement.CATEGORIES]
    priority: Literal[announcement.PRIORITIES] = 'medium'
    targetAudience: Literal[announcement.AUDIENCES]
    specificRooms: List[str] = []
    specificFloors: List[int] = []
    attachments: List[Dict[str, Any]] = []
    eventDetails: Optional[EventDetails] = None
    expiresAt: Optional[Timestamp] = None
    isPinned: bool = False
    tags: List[str] = []


class AnnouncementUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=10)
    category: Optional[Literal[announcement.CATEGORIES]] = None
    priority: Optional[Literal[announcement.PRIORITIES]] = None
    targetAudience: Optional[Literal[announcement.AUDIENCES]] = None
    specificRooms: Optional[List[str]] = None
    specificFloors: Optional[List[int]] = None
    attachments: Optional[List[Dict[str, Any]]] = None
    eventDetails: Optional[EventDetails] = None
    expiresAt: Optional[Timestamp] = None
    tags: Optional[List[str]] = None


class AnnouncementQuery(Page):
    category: Optional[Literal[announcement.CATEGORIES]] = None
    priority: Optional[Literal[announcement.PRIORITIES]] = None
    unreadOnly: bool = False
    upcomingEvents: bool = False


class AnnouncementSearch(Page):
    q: str = Field(..., min_length=2)
    category: Optional[Literal[announcement.CATEGORIES]] = None
    priority: Optional[Literal[announcement.PRIORITIES]] = None


class AnnouncementStatsQuery(BaseModel):
    dateFrom: Optional[Timestamp] = None
    dateTo: Optional[Timestamp] = None


# ==================== DINING ====================

class MessItem(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: Literal[dining.ITEM_CATEGORIES] = 'main'
    isVegetarian: bool = True
    isVegan: bool = False
    calories: Optional[int] = Field(None, ge=0)


class Timings(BaseModel):
    start: HHMM
    end: HHMM


class MessMenu(BaseModel):
    date: date
    mealType: Literal[dining.MEAL_TYPES]
    items: List[MessItem] = Field(..., min_length=1)
    timings: Timings
    specialNotes: Optional[str] = None
    nutritionalInfo: Dict[str, float] = {}
    queueStatus: Literal[dining.QUEUE_STATUSES] = 'medium'
    estimatedWaitTime: int = Field(0, ge=0)
    isAvailable: bool = True


class QueueUpdate(BaseModel):
    queueStatus: Literal[dining.QUEUE_STATUSES]
    estimatedWaitTime: Optional[int] = Field(None, ge=0)


class MealRating(BaseModel):
    rating: Optional[Score] = None
    taste: Optional[Score] = None
    quality: Optional[Score] = None
    quantity: Optional[Score] = None
    feedback: Optional[str] = Field(None, max_length=500)
    improvements: List[Literal[dining.IMPROVEMENTS]] = []
    wouldRecommend: bool = False
    anonymous: bool = False

    @model_validator(mode='after')
    def rating_or_scores(self):
        if self.rating is None and None in (self.taste, self.quality, self.quantity):
            raise ValueError('Provide an overall rating or all of taste, quality and quantity')
        return self
