import enum

class FeeType(str, enum.Enum):
    standard = "STANDARD"
    remote_island = "REMOTE_ISLAND"
    jeju = "JEJU"

class Role(str, enum.Enum):
    root_admin = "ROOT_ADMIN"
    admin = "ADMIN"
    member = "MEMBER"

class OrderRequestStatus(str, enum.Enum):
    pending = "PENDING"
    approved = "APPROVED"
    rejected = "REJECTED"

class OrderStatus(str, enum.Enum):
    pending = "PENDING"
    processing = "PROCESSING"
    completed = "COMPLETED"
    cancelled = "CANCELLED"
    refunded = "REFUNDED"

class ResyncBranch(str, enum.Enum):
    no_op = "no-op"
    empty_load = "empty-load"
    full_replace = "full-replace"
