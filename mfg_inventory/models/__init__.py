# mfg_inventory/models/__init__.py
from .unit import Unit
from .user import User, UserRole, UserStatus
from .template import FractileTemplate, CellTemplate, TierTemplate, TemplateKind
from .product import Product, ProductType, ProductFractile, ProductCell, ProductTier, ComponentKind
from .batch import Batch, BatchStatus, Shift
