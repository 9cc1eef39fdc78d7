from .core import core_bp
from .auth import auth_bp
from .account import account_bp
from .videos import videos_bp
from .interactions import interactions_bp
from .engagement import engagement_bp
from .sharing import sharing_bp
from .subscriptions import subscriptions_bp
from .ads import ads_bp
from .creator import creator_bp
from .affiliate import affiliate_bp
from .admin import admin_bp
from .templates import templates_bp
from .catalog import catalog_bp
from .notifications import notifications_bp

__all__ = [
    'core_bp',
    'auth_bp',
    'account_bp',
    'videos_bp',
    'interactions_bp',
    'engagement_bp',
    'sharing_bp',
    'subscriptions_bp',
    'ads_bp',
    'creator_bp',
    'affiliate_bp',
    'admin_bp',
    'templates_bp',
    'catalog_bp',
    'notifications_bp',
]
