from .auth import auth_bp
from .delivery import delivery_bp
from .orders import orders_bp
from .products import products_bp
from .users import users_bp

__all__ = ["auth_bp", "delivery_bp", "orders_bp", "products_bp", "users_bp"]
