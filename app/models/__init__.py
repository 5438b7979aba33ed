from app.models.user import User, UserRole
from app.models.token_blacklist import TokenBlacklist
from app.models.password_reset_token import PasswordResetToken
from app.models.address import Address
from app.models.category import Category
from app.models.product import Product, ProductImage, ProductVariant
from app.models.cart import Cart, CartItem
from app.models.order import Order, OrderItem, OrderStatus, PaymentStatus
from app.models.wishlist import Wishlist
