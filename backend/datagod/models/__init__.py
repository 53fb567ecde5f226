from .user import User  # noqa: F401
from .wallet import Wallet  # noqa: F401
from .wallet_transaction import WalletTransaction  # noqa: F401
from .shop import Shop  # noqa: F401
from .order import Order  # noqa: F401
from .payment_record import PaymentRecord  # noqa: F401
from .shop_profit import ShopProfit  # noqa: F401
from .shop_balance import ShopAvailableBalance  # noqa: F401
from .withdrawals import Withdrawal  # noqa: F401
from .shop_customer import ShopCustomer  # noqa: F401

from .fulfillment_log import FulfillmentLog  # noqa: F401
from .blacklist import BlacklistedPhone  # noqa: F401
from .app_setting import AppSetting  # noqa: F401

from .notification import Notification  # noqa: F401

from .audit_log import AuditLog  # noqa: F401
