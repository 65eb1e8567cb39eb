from openbook.models.user import User, Admin, AdminRole, AdminStatus, ROOT_ROLES
from openbook.models.wallet import Balance, Holding, ASSETS, QUOTE_ASSET
from openbook.models.ledger import LedgerEntry, LedgerKind
from openbook.models.mining import MiningOrder, MiningStatus
from openbook.models.deposit import DepositRequest, DepositStatus, AdminDepositAddress
from openbook.models.withdrawal import WithdrawRequest, WithdrawStatus
from openbook.models.access import UserAccessControl, TradePermission
from openbook.models.trade import TradeOrder, TradeSide, TradeResult
from openbook.models.notification import UserNotification, NotificationStatus
