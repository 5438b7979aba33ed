from app.db.base_class import Base


# IMPORT ALL MODELS HERE (THIS REGISTERS THEM WITH Base.metadata)
from app.models.user import User
from app.models.token_blacklist import TokenBlacklist
from app.models.password_reset_token import PasswordResetToken
from app.models.address import Address
from app.models.category import Category
from app.models.product import Product, ProductImage, ProductVariant
from app.models.cart import Cart, CartItem
from app.models.order import Order, OrderItem
from app.models.wishlist import Wishlist
